from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict
import random

E_SIMULATED = "simulated failure"


@dataclass(frozen=True)
class FaultDecision:
    action: str  # PASS | TRAP | DELAY | DROP | FRAGMENT
    delay_s: float = 0.0
    message: str = ""
    chunk_size: int = 0


PASS = FaultDecision("PASS")


class FaultInjector:
    """Seeded fault injection with per-command overrides.

    Profile layout::

        default:
          trap: {p: 0.0, message: "..."}
          timeout: {p: 0.0, mode: delay|drop, delay_s: [lo, hi]}
          fragment: {p: 0.0, chunk_size: 3}
        per_command:
          /system/resource/print:
            timeout: {p: 1.0, mode: drop}
    """

    def __init__(self, rng: random.Random, profile: Dict[str, Any]) -> None:
        self._rng = rng
        self.profile = profile

    def _cfg_for(self, cmd: str) -> Dict[str, Dict[str, Any]]:
        base = (self.profile.get("default") or {})
        per = (self.profile.get("per_command") or {}).get(cmd, {}) or {}

        def merged(section: str) -> Dict[str, Any]:
            d = dict(base.get(section) or {})
            d.update(per.get(section) or {})
            return d

        return {
            "trap": merged("trap"),
            "timeout": merged("timeout"),
            "fragment": merged("fragment"),
        }

    def _hit(self, p: Any) -> bool:
        p = float(p or 0.0)
        return p > 0 and self._rng.random() < p

    def evaluate(self, cmd: str) -> FaultDecision:
        cfg = self._cfg_for(cmd)

        if self._hit(cfg["trap"].get("p")):
            return FaultDecision("TRAP", message=str(cfg["trap"].get("message", E_SIMULATED)))

        to = cfg["timeout"]
        if self._hit(to.get("p")):
            lo, hi = to.get("delay_s", [0.0, 0.0])
            delay = float(self._rng.uniform(float(lo), float(hi))) if float(hi) > 0 else 0.0
            if str(to.get("mode", "delay")).lower() == "drop":
                return FaultDecision("DROP", delay_s=delay)
            return FaultDecision("DELAY", delay_s=delay)

        frag = cfg["fragment"]
        if self._hit(frag.get("p")):
            return FaultDecision("FRAGMENT", chunk_size=max(1, int(frag.get("chunk_size", 1))))

        return PASS
