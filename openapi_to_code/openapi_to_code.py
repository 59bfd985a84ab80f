import json
import logging
import sys

import click

from .document import load_spec
from .errors import OpenApiToCodeError
from .output import write_modules
from .pipeline import GeneratorConfig, PipelineGenerator, available_targets


@click.command()
@click.option("--input", "-i", "source", required=True, type=str, help="OpenAPI/Swagger file path or http(s) URL")
@click.option("--output", "-o", required=True, type=click.Path(file_okay=False, resolve_path=True), help="Output directory")
@click.option("--moduleprefix", "-p", default=None, type=str, help="Prefix for generated module names")
@click.option("--target", "-t", default=None, type=click.Choice(available_targets(), case_sensitive=False), help="Target language (default: elm)")
@click.option("--template", default=None, type=click.Path(exists=True, dir_okay=False, resolve_path=True), help="Custom module template")
@click.option("--config", "-c", default=None, type=click.Path(exists=True, resolve_path=True), help="JSON generator configuration")
@click.option("--force", "-f", is_flag=True, default=False, help="Overwrite existing files")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging")
def openapi_to_code(source, output, moduleprefix, target, template, config, force, verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if config is not None:
        with open(config) as f:
            config = GeneratorConfig.from_dict(json.load(f))
    else:
        config = GeneratorConfig()

    # Command line options override the config file
    if moduleprefix is not None:
        config.module_prefix = moduleprefix
    if target is not None:
        config.target = target.lower()
    if template is not None:
        config.template_path = template
    if force:
        config.force = True

    try:
        document = load_spec(source)
        generator = PipelineGenerator(document, config)
        units = generator.generate()
        results = write_modules(output, units, config.force)
    except OpenApiToCodeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        click.echo(f"Error writing output: {e}", err=True)
        sys.exit(1)

    for result in results:
        click.echo(str(result))

    diagnostics = generator.diagnostics
    if diagnostics:
        click.echo(f"{len(diagnostics)} diagnostic(s):")
        for diagnostic in diagnostics:
            click.echo(f"  {diagnostic}")
    else:
        click.echo("No diagnostics.")
