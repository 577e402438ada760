"""Strategy registry and tiered resolution.

Tiers are attempted in order; the first one that resolves wins. The trace
strategy executes the app host, so it is never part of the implicit tiers.
"""

from .errors import AllStrategiesFailed, LocatorError, UnsupportedPlatform
from .locator import BundleLocator
from .sections import SectionSymbolStrategy
from .signature import SignatureScanStrategy
from .trace import ProcessTraceStrategy


STRATEGIES = {
    SignatureScanStrategy.name: SignatureScanStrategy,
    SectionSymbolStrategy.name: SectionSymbolStrategy,
    ProcessTraceStrategy.name: ProcessTraceStrategy,
}

AUTO_TIERS = (SignatureScanStrategy.name, SectionSymbolStrategy.name)


class TieredLocator(BundleLocator):
    name = "auto"

    def __init__(self, tiers, logger=None):
        super().__init__(logger)
        self.tiers = list(tiers)

    def locate_with_tier(self, path):
        """Return ``(tier_name, location)`` from the first tier that resolves."""
        failures = []
        for tier in self.tiers:
            try:
                location = tier.locate(path)
            except LocatorError as e:
                self.logger.diag(f"tier {tier.name} failed: {e}")
                failures.append((tier.name, e))
                continue
            self.logger.diag(f"tier {tier.name} resolved {location}")
            return tier.name, location
        raise AllStrategiesFailed(failures)

    def locate(self, path):
        return self.locate_with_tier(path)[1]

    def __repr__(self):
        return f"TieredLocator({', '.join(t.name for t in self.tiers)})"


def create_locator(name, logger=None, platform=None, timeout=None, runner=None, reader=None):
    """Build a strategy by registry name (or 'auto' for the tiered locator)."""
    if name == TieredLocator.name:
        tiers = []
        for tier_name in AUTO_TIERS:
            try:
                tiers.append(create_locator(tier_name, logger=logger, platform=platform, reader=reader))
            except UnsupportedPlatform as e:
                if logger is not None:
                    logger.diag(f"skipping tier {tier_name}: {e}")
        return TieredLocator(tiers, logger=logger)
    if name == SignatureScanStrategy.name:
        return SignatureScanStrategy(logger=logger)
    if name == SectionSymbolStrategy.name:
        return SectionSymbolStrategy(platform=platform, reader=reader, logger=logger)
    if name == ProcessTraceStrategy.name:
        kwargs = {}
        if timeout is not None:
            kwargs['timeout'] = timeout
        return ProcessTraceStrategy(runner=runner, logger=logger, **kwargs)
    raise ValueError(f"Unknown strategy {name!r} (expected one of "
                     f"{', '.join(list(STRATEGIES) + [TieredLocator.name])})")
