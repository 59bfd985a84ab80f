"""
Configuration for the code generator pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GeneratorConfig:
    """Configuration options for code generation."""

    # Module prefix for generated modules (empty = backend default)
    module_prefix: str = ""

    # Target backend name
    target: str = "elm"

    # Custom template overriding the backend's embedded default
    template_path: str | None = None

    # Overwrite existing files when writing output
    force: bool = False

    # Split layout once reachable named schemas exceed this count
    split_schema_threshold: int = 50

    # ... or once complex schemas exceed this count
    split_complex_threshold: int = 20

    # Objects with more properties than this count as complex
    complex_property_threshold: int = 10

    # Length of the name prefix used to group types in split layout
    group_prefix_length: int = 2

    # Base URL used when the document declares no servers
    default_base_url: str = "https://api.example.com"

    # Fixed timestamp for reproducible output (None = current time)
    generation_timestamp: str | None = None

    # Extra headers baked into the generated default configuration
    custom_headers: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def from_dict(d: dict) -> GeneratorConfig:
        """Create a config from a dictionary."""
        config = GeneratorConfig()
        for k, v in d.items():
            if hasattr(config, k):
                setattr(config, k, v)
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary."""
        return {
            "module_prefix": self.module_prefix,
            "target": self.target,
            "template_path": self.template_path,
            "force": self.force,
            "split_schema_threshold": self.split_schema_threshold,
            "split_complex_threshold": self.split_complex_threshold,
            "complex_property_threshold": self.complex_property_threshold,
            "group_prefix_length": self.group_prefix_length,
            "default_base_url": self.default_base_url,
            "generation_timestamp": self.generation_timestamp,
            "custom_headers": self.custom_headers,
        }
