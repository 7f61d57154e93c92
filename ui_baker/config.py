from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BINARY_CANDIDATES: list[str] = [
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    # Snap builds ignore --user-data-dir; last resort only.
    "/snap/bin/chromium",
]

DEFAULT_VIEWPORT_WIDTH = 750
DEFAULT_VIEWPORT_HEIGHT = 1624
DEFAULT_DEVICE_SCALE_FACTOR = 2.0


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def to_positive_int(value: object, fallback: int) -> int:
    try:
        parsed = int(float(str(value).strip()))
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed > 0 else fallback


def to_positive_float(value: object, fallback: float) -> float:
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")) or parsed <= 0:
        return fallback
    return parsed


@dataclass(frozen=True)
class Viewport:
    width: int = DEFAULT_VIEWPORT_WIDTH
    height: int = DEFAULT_VIEWPORT_HEIGHT
    device_scale_factor: float = DEFAULT_DEVICE_SCALE_FACTOR

    @classmethod
    def normalize(cls, raw: Viewport | dict | None) -> Viewport:
        if isinstance(raw, Viewport):
            source: dict = {
                "width": raw.width,
                "height": raw.height,
                "deviceScaleFactor": raw.device_scale_factor,
            }
        else:
            source = raw if isinstance(raw, dict) else {}
        scale_raw = source.get("deviceScaleFactor", source.get("device_scale_factor"))
        try:
            scale = float(scale_raw) if scale_raw is not None else DEFAULT_DEVICE_SCALE_FACTOR
        except (TypeError, ValueError):
            scale = DEFAULT_DEVICE_SCALE_FACTOR
        if scale != scale or scale in (float("inf"), float("-inf")):
            scale = DEFAULT_DEVICE_SCALE_FACTOR
        return cls(
            width=to_positive_int(source.get("width"), DEFAULT_VIEWPORT_WIDTH),
            height=to_positive_int(source.get("height"), DEFAULT_VIEWPORT_HEIGHT),
            device_scale_factor=max(0.5, scale),
        )

    def to_dict(self) -> dict[str, float]:
        return {"width": self.width, "height": self.height, "deviceScaleFactor": self.device_scale_factor}


@dataclass(frozen=True)
class RuleToggles:
    """One disable switch per bake rule. Read from env at call time."""

    opacity_decoupled: bool = True
    low_alpha_context_capture: bool = True
    background_stack_composite: bool = True
    underlay_faint_border: bool = True

    @classmethod
    def from_env(cls) -> RuleToggles:
        return cls(
            opacity_decoupled=not env_flag("BAKE_DISABLE_OPACITY_DECOUPLED"),
            low_alpha_context_capture=not env_flag("BAKE_DISABLE_LOW_ALPHA_CONTEXT_CAPTURE"),
            background_stack_composite=not env_flag("BAKE_DISABLE_BACKGROUND_STACK_COMPOSITE"),
            underlay_faint_border=not env_flag("BAKE_DISABLE_UNDERLAY_FAINT_BORDER"),
        )


@dataclass
class BakeConfig:
    binary_path: str
    profile_path: str
    cdp_port: int = 0
    headless: bool = True
    navigation_timeout: float = 30.0
    settle_timeout: float = 5.0
    disable_nav_load_timeout_fallback: bool = False
    viewport: Viewport = field(default_factory=Viewport)
    extra_flags: list[str] = field(default_factory=list)
    cdp_timeout: float = 10.0

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("BAKE_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        return "google-chrome"

    @classmethod
    def from_env(cls) -> BakeConfig:
        profile = expand_path(os.environ.get("BAKE_BROWSER_PROFILE", "~/.cache/ui-baker/profile"))
        flags_raw = os.environ.get("BAKE_BROWSER_FLAGS", "")
        nav_ms = to_positive_int(os.environ.get("BAKE_NAV_TIMEOUT_MS"), 30000)
        settle_ms = to_positive_int(os.environ.get("BAKE_NAV_SETTLE_TIMEOUT_MS"), 5000)
        return cls(
            binary_path=cls.detect_binary(),
            profile_path=profile,
            cdp_port=to_positive_int(os.environ.get("BAKE_CDP_PORT"), 0),
            headless=os.environ.get("BAKE_HEADLESS", "1") != "0",
            navigation_timeout=nav_ms / 1000.0,
            settle_timeout=settle_ms / 1000.0,
            disable_nav_load_timeout_fallback=env_flag("BAKE_DISABLE_NAV_LOAD_TIMEOUT_FALLBACK"),
            extra_flags=[flag for flag in flags_raw.split(",") if flag.strip()],
        )


def round_for_display(value: float) -> float:
    return round(float(value), 2)


@dataclass(frozen=True)
class ResolutionConfig:
    """Target raster size mapped onto a CSS viewport.

    Widths above 500 are read as physical pixels of a design drawn at
    ``base_width`` logical pixels; the scale factor follows from the ratio.
    """

    mode: str
    target_width: int
    target_height: int
    base_width: float
    dpr: float
    logical_width: int
    logical_height: int

    @property
    def viewport(self) -> Viewport:
        return Viewport(self.logical_width, self.logical_height, self.dpr)

    def to_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode,
            "targetWidth": self.target_width,
            "targetHeight": self.target_height,
            "baseWidth": self.base_width,
            "dpr": self.dpr,
            "logicalWidth": self.logical_width,
            "logicalHeight": self.logical_height,
            "viewport": self.viewport.to_dict(),
        }


def build_resolution_config(
    width: object = None,
    height: object = None,
    base_width: object = None,
    dpr: object = None,
) -> ResolutionConfig:
    target_width = round(to_positive_float(width, DEFAULT_VIEWPORT_WIDTH))
    target_height = round(to_positive_float(height, DEFAULT_VIEWPORT_HEIGHT))
    base = to_positive_float(base_width, 375.0)
    user_dpr = to_positive_float(dpr, 0.0)

    if target_width > 500:
        mode = "physical"
        scale = round_for_display(target_width / base)
        logical_width: float = base
        logical_height: float = target_height / scale
    else:
        mode = "logical"
        scale = user_dpr or DEFAULT_DEVICE_SCALE_FACTOR
        logical_width = target_width
        logical_height = target_height

    return ResolutionConfig(
        mode=mode,
        target_width=target_width,
        target_height=target_height,
        base_width=round_for_display(base),
        dpr=round_for_display(scale),
        logical_width=max(1, round(logical_width)),
        logical_height=max(1, round(logical_height)),
    )
