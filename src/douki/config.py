"""
Tunable settings for sync data generation and synchronization.

Every threshold used by the keyframe planner, the delay estimator and the
media helpers lives here so it can be overridden from the environment
(``DOUKI_*`` variables, optionally loaded from a ``.env`` file).
"""
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv


@dataclass( frozen=True )
class SyncSettings:
    """Named constants used across the synchronization engine."""

    # Delay estimation
    min_match_count: int = 10;              # Matches needed for a section to count
    min_subtitle_lines: int = 10;           # Dialogue lines needed to keep an extracted subtitle
    max_allowed_deviation: float = 750.0;   # Absolute deviation ceiling (offset units)
    targeted_deviation: float = 200.0;      # Stop trimming once below this
    filter_factors: Tuple[float, ...] = ( 0.25, 0.30, 0.35 );
    iqr_multiplier: float = 1.5;

    # Keyframe planning
    max_keyframe_gap: float = 2.0;          # Seconds between request and keyframe
    keyframe_window: float = 30.0;          # Probe +/- this many seconds
    keyframe_fallback_skew: float = 0.5;    # Used when there is no next keyframe

    # Media
    sample_rate: int = 22050;
    scene_threshold: float = 0.15;
    reencode_codec: str = "libx264";
    reencode_preset: str = "ultrafast";
    reencode_crf: int = 28;
    reencode_scale: str = "scale=-2:480";

    # Scheduling
    max_workers: int = 4;


def _coerce( raw: str, current ):
    """Convert an environment string to the type of the default value."""
    if isinstance( current, tuple ):
        return tuple( float( part ) for part in raw.split( "," ) if part.strip() );
    return type( current )( raw );


def load_settings( env_file: Path = None, **overrides ) -> SyncSettings:
    """
    Build settings from defaults, environment variables and explicit overrides.

    Environment variables are named after the field, upper-cased and prefixed
    with ``DOUKI_`` (``DOUKI_MIN_MATCH_COUNT``, ``DOUKI_FILTER_FACTORS=0.25,0.3``).

    Raises:
        ValueError: If an environment value cannot be converted.
    """
    env_file = Path( env_file ) if env_file else Path( ".env" );
    if env_file.exists():
        load_dotenv( env_file );

    settings = SyncSettings();
    values = {};
    for field in fields( settings ):
        raw = os.getenv( f"DOUKI_{field.name.upper()}" );
        if raw is None:
            continue;
        try:
            values[field.name] = _coerce( raw, getattr( settings, field.name ) );
        except ValueError as e:
            raise ValueError( f"Invalid value for DOUKI_{field.name.upper()}: {raw!r}" ) from e;

    values.update( overrides );
    return replace( settings, **values );
