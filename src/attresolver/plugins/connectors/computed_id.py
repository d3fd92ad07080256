"""Computed identifier data connector.

Derives a stable, opaque, per-relying-party identifier for a principal:

    encode(digest(requester + "!" + source_value + "!" + salt))

The same principal gets a different identifier at every relying party, and
the identifier can be recomputed at any time without storing it.
"""

import base64
import hashlib
from typing import Literal

from pydantic import Field, field_validator

from attresolver.contracts import ComponentInitializationError, IdPAttribute, ResolutionError, StringValue
from attresolver.engine.context import ResolutionContext
from attresolver.plugins.base import BaseDataConnector
from attresolver.plugins.config_base import DataConnectorConfig
from attresolver.plugins.dependency_support import get_merged_attribute_values
from attresolver.plugins.value_transforms import string_values

MIN_SALT_LENGTH = 16


class ComputedIdConfig(DataConnectorConfig):
    """Configuration for the computed id connector."""

    salt: str = Field(description="Secret salt; at least 16 bytes")
    algorithm: Literal["sha1", "sha256", "sha384", "sha512"] = "sha1"
    encoding: Literal["base64", "base32"] = "base64"
    generated_attribute_id: str | None = Field(
        default=None,
        description="Name of the produced attribute (defaults to the connector id)",
    )

    @field_validator("salt")
    @classmethod
    def validate_salt_length(cls, v: str) -> str:
        if len(v.encode()) < MIN_SALT_LENGTH:
            raise ValueError(f"salt must be at least {MIN_SALT_LENGTH} bytes")
        return v


def compute_id(requester: str, source_value: str, salt: str, *, algorithm: str = "sha1", encoding: str = "base64") -> str:
    """Compute the identifier for one principal at one relying party."""
    digest = hashlib.new(algorithm)
    digest.update(requester.encode())
    digest.update(b"!")
    digest.update(source_value.encode())
    digest.update(b"!")
    digest.update(salt.encode())
    raw = digest.digest()
    if encoding == "base32":
        return base64.b32encode(raw).decode("ascii")
    return base64.b64encode(raw).decode("ascii")


class ComputedIdConnector(BaseDataConnector):
    """Compute a salted, per-relying-party identifier.

    Config options:
        dependencies: Required. Exactly one source value (e.g., a uid)
        salt: Required. Secret salt, at least 16 bytes
        algorithm: Digest algorithm (default: sha1)
        encoding: base64 or base32 (default: base64)
        generated_attribute_id: Output attribute name (default: connector id)
    """

    name = "computed_id"
    plugin_version = "1.0.0"
    config_class = ComputedIdConfig

    @property
    def config(self) -> ComputedIdConfig:
        config = super().config
        assert isinstance(config, ComputedIdConfig)
        return config

    @property
    def generated_attribute_id(self) -> str:
        return self.config.generated_attribute_id or self.id

    def _validate(self) -> None:
        super()._validate()
        if not self.dependencies:
            raise ComponentInitializationError(f"Computed id connector '{self.id}' requires a source attribute dependency")

    def fetch(self, context: ResolutionContext) -> dict[str, IdPAttribute]:
        if not context.requester:
            raise ResolutionError("a computed id requires the requester (relying party) id")

        sources = string_values(get_merged_attribute_values(context, self.dependencies), plugin_id=self.id)
        if not sources:
            return {}
        if len(sources) > 1:
            raise ResolutionError(f"source attribute must have exactly one value, got {len(sources)}")

        identifier = compute_id(
            context.requester,
            sources[0],
            self.config.salt,
            algorithm=self.config.algorithm,
            encoding=self.config.encoding,
        )
        attribute_id = self.generated_attribute_id
        return {attribute_id: IdPAttribute(attribute_id, (StringValue(identifier),))}
