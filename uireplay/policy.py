"""What to do with a reference screenshot that no longer matches."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from uireplay.capture import save_image
from uireplay.comparator import PerceptualComparator
from uireplay.errors import ConfigError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes"}


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def delta_file_name(file_name: str) -> str:
    """``shot.png`` -> ``shot.delta.png``."""
    root, ext = os.path.splitext(file_name)
    return f"{root}.delta{ext or '.png'}"


@dataclass(frozen=True)
class CapturePolicyConfig:
    recapture: bool = False
    recapture_conditionally: bool = False
    recapture_lower_bound: Optional[float] = None
    white_equals: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CapturePolicyConfig":
        """Build the policy from RECAPTURE, RECAPTURE_CONDITIONALLY,
        RECAPTURE_LOWER_BOUND and WHITE_EQUALS."""
        env = os.environ if environ is None else environ
        raw_bound = (env.get("RECAPTURE_LOWER_BOUND") or "").strip()
        lower_bound = None
        if raw_bound:
            try:
                lower_bound = float(raw_bound)
            except ValueError:
                raise ConfigError(
                    f"RECAPTURE_LOWER_BOUND must be a number, got {raw_bound!r}"
                ) from None
        return cls(
            recapture=_env_flag(env.get("RECAPTURE")),
            recapture_conditionally=_env_flag(env.get("RECAPTURE_CONDITIONALLY")),
            recapture_lower_bound=lower_bound,
            white_equals=_env_flag(env.get("WHITE_EQUALS")),
        )


class Outcome(Enum):
    RECAPTURED = "Recaptured"
    FAILED = "Failed"


@dataclass(frozen=True)
class PolicyDecision:
    outcome: Outcome
    message: str = ""
    delta_path: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILED


class CapturePolicy:
    """Resolves a final mismatch into a recapture or a failure.

    Flags are consulted in order: ``recapture``, then
    ``recapture_conditionally`` (only with a lower bound), then the default of
    failing. Delta images are written next to the reference whenever the
    images can be diffed.
    """

    def __init__(
        self,
        config: Optional[CapturePolicyConfig] = None,
        comparator: Optional[PerceptualComparator] = None,
    ):
        self.config = config or CapturePolicyConfig()
        self.comparator = comparator or PerceptualComparator(
            white_equals=self.config.white_equals
        )

    def resolve(self, reference_path: str, live, reference) -> PolicyDecision:
        file_name = os.path.basename(reference_path)
        cfg = self.config

        if cfg.recapture:
            delta_path = self._write_delta(reference_path, live, reference)
            self._overwrite(reference_path, live)
            return PolicyDecision(Outcome.RECAPTURED, f"Recaptured {file_name}", delta_path)

        if cfg.recapture_conditionally and cfg.recapture_lower_bound is not None:
            if not self._diffable(live, reference):
                return PolicyDecision(
                    Outcome.FAILED,
                    f"Image does not match {file_name} and not eligible for "
                    f"recapture: dimensions differ ({self._size(live)} vs {self._size(reference)}).",
                )
            score = self.comparator.score(live, reference)
            delta_path = self._write_delta(reference_path, live, reference)
            if score >= cfg.recapture_lower_bound:
                logger.info(
                    "Score %.2f within recapture bound %.2f, recapturing %s",
                    score, cfg.recapture_lower_bound, file_name,
                )
                self._overwrite(reference_path, live)
                return PolicyDecision(Outcome.RECAPTURED, f"Recaptured {file_name}", delta_path)
            return PolicyDecision(
                Outcome.FAILED,
                f"Image does not match {file_name} and not eligible for recapture. "
                f"See {os.path.basename(delta_path)}",
                delta_path,
            )

        delta_path = self._write_delta(reference_path, live, reference)
        if delta_path is not None:
            return PolicyDecision(
                Outcome.FAILED,
                f"Image does not match {file_name}. See {os.path.basename(delta_path)}",
                delta_path,
            )
        return PolicyDecision(
            Outcome.FAILED,
            f"Image does not match {file_name}: dimensions differ "
            f"({self._size(live)} vs {self._size(reference)}).",
        )

    def _diffable(self, live, reference) -> bool:
        return self._size(live) == self._size(reference)

    @staticmethod
    def _size(image):
        return tuple(image.size)

    def _write_delta(self, reference_path: str, live, reference) -> Optional[str]:
        delta = self.comparator.generate_delta(live, reference, white_equals=self.config.white_equals)
        if delta is None:
            return None
        path = delta_file_name(reference_path)
        save_image(delta, path)
        return path

    def _overwrite(self, reference_path: str, live):
        save_image(live, reference_path)
        logger.info("Overwrote reference %s", reference_path)
