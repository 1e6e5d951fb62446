"""What the server advertises in its initialize result, and what we may list."""

from dataclasses import dataclass, field
from typing import Any

# Listing requests for each discoverable feature: (method, result key)
LISTINGS: dict[str, tuple[tuple[str, str], ...]] = {
    "tools": (("tools/list", "tools"),),
    "resources": (
        ("resources/list", "resources"),
        ("resources/templates/list", "resourceTemplates"),
    ),
    "prompts": (("prompts/list", "prompts"),),
}

KNOWN_FEATURES = ("tools", "resources", "prompts", "logging", "completions")


@dataclass(frozen=True)
class FeatureCapability:
    """One advertised feature with the options the bridge cares about."""

    name: str
    list_changed: bool = False
    subscribe: bool = False

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "FeatureCapability":
        # Servers send {} or null for "supported, no options"
        options = data if isinstance(data, dict) else {}
        return cls(
            name=name,
            list_changed=bool(options.get("listChanged", False)),
            subscribe=bool(options.get("subscribe", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self.list_changed:
            options["listChanged"] = True
        if self.subscribe:
            options["subscribe"] = True
        return options


@dataclass
class ServerCapabilities:
    """
    Parsed ``capabilities`` of the initialize result.

    Discovery only issues the list requests of features present here, so a
    tools-only server is never asked for resources or prompts.
    """

    features: dict[str, FeatureCapability] = field(default_factory=dict)
    experimental: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "ServerCapabilities":
        if not isinstance(data, dict):
            return cls()
        features = {
            name: FeatureCapability.from_dict(name, data[name])
            for name in KNOWN_FEATURES
            if name in data
        }
        experimental = data.get("experimental")
        return cls(
            features=features,
            experimental=experimental if isinstance(experimental, dict) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        caps: dict[str, Any] = {
            name: feature.to_dict() for name, feature in self.features.items()
        }
        if self.experimental is not None:
            caps["experimental"] = self.experimental
        return caps

    def supports(self, feature: str) -> bool:
        return feature in self.features

    def supports_tools(self) -> bool:
        return self.supports("tools")

    def supports_resources(self) -> bool:
        return self.supports("resources")

    def supports_prompts(self) -> bool:
        return self.supports("prompts")

    def listings(self) -> list[tuple[str, str]]:
        """(method, result key) pairs discovery may request, in a fixed order."""
        return [
            listing
            for feature, pairs in LISTINGS.items()
            if self.supports(feature)
            for listing in pairs
        ]

    def get_available_features(self) -> list[str]:
        return [name for name in KNOWN_FEATURES if name in self.features]


ALL_LISTINGS = [listing for pairs in LISTINGS.values() for listing in pairs]
