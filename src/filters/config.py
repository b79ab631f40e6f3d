"""
Runtime view of the settings the detection/merge/compile functions need.

The functions in this package never read global settings; callers build a
FilterConfig (usually with FilterConfig.from_settings) and pass it in.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

from config.constants import ALL_SOURCES


@dataclass(frozen=True)
class FilterConfig:
    """Settings consumed by the detector, resolver and compiler."""

    enabled: bool = True
    prefix: str = "jsf"
    enabled_taxonomies: FrozenSet[str] = frozenset(
        {"product_cat", "product_tag", "category", "post_tag"}
    )
    detect_from: Tuple[str, ...] = ALL_SOURCES
    registered_taxonomies: FrozenSet[str] = frozenset(
        {"category", "post_tag", "product_cat", "product_tag"}
    )
    woocommerce_active: bool = True
    debug: bool = False
    integrations: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"elementor", "jetsearch", "jetfilters", "woocommerce"})
    )

    def taxonomy_exists(self, taxonomy: str) -> bool:
        return taxonomy in self.registered_taxonomies

    def taxonomy_enabled(self, taxonomy: str) -> bool:
        return taxonomy in self.enabled_taxonomies

    def source_enabled(self, source: str) -> bool:
        return source in self.detect_from

    def integration_enabled(self, name: str) -> bool:
        return self.enabled and name in self.integrations

    @classmethod
    def from_settings(cls, settings) -> "FilterConfig":
        integrations = {
            name
            for name, on in (
                ("elementor", settings.enable_elementor),
                ("jetsearch", settings.enable_jetsearch),
                ("jetfilters", settings.enable_jetfilters),
                ("woocommerce", settings.enable_woocommerce),
            )
            if on
        }
        return cls(
            enabled=settings.enabled,
            prefix=settings.filter_param_prefix or "jsf",
            enabled_taxonomies=frozenset(settings.enabled_taxonomies),
            detect_from=tuple(settings.detect_filters_from),
            registered_taxonomies=frozenset(settings.registered_taxonomies),
            woocommerce_active=settings.woocommerce_active,
            debug=settings.debug,
            integrations=frozenset(integrations),
        )
