"""
Keyframe-aware planning of how a section is cut out of its source media.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import SyncSettings
from .logging import get_logger


@dataclass( frozen=True )
class ExtractionPlan:
    """Decision taken for one section cut."""

    requested_start: float;          # Start asked for by the user (seconds)
    start: float;                    # Start actually used for the cut
    reencode: bool;                  # True when video must be re-encoded
    keyframe: Optional[float] = None;  # Closest keyframe, if any was found
    gap: Optional[float] = None;       # Distance between request and keyframe

    @property
    def can_skip_cut( self ) -> bool:
        """A lossless section starting at zero can reuse the source file."""
        return not self.reencode and self.requested_start == 0;

    def __repr__( self ):
        mode = "reencode" if self.reencode else "copy";
        return f"ExtractionPlan({mode}, requested={self.requested_start:.3f}, start={self.start:.5f})";


def plan_extraction(
    requested_start: float,
    keyframes: Sequence[float],
    has_video: bool,
    settings: SyncSettings = None
) -> ExtractionPlan:
    """
    Decide whether a section can be stream-copied and where the cut starts.

    Audio-only sources are always copied. With video, the keyframe closest to
    the requested start is looked up: when it is more than
    ``settings.max_keyframe_gap`` seconds away the video is re-encoded from
    the requested start. Otherwise the stream is copied from a point two
    thirds of the way from that keyframe to the next one, since a copy
    starting exactly on a keyframe timestamp may resolve to the previous
    keyframe. Without a next keyframe the cut is skewed by
    ``settings.keyframe_fallback_skew`` instead.

    Args:
        requested_start: Requested start in seconds (0 for the beginning)
        keyframes: Ordered keyframe times near the requested start
        has_video: Whether the source has a video stream
        settings: Thresholds (defaults when omitted)

    Returns:
        ExtractionPlan describing the cut
    """
    settings = settings or SyncSettings();
    logger = get_logger();
    requested_start = float( requested_start or 0 );

    if not has_video:
        return ExtractionPlan( requested_start, requested_start, False );

    if not keyframes:
        logger.debug( "No keyframes available: reencode is needed" );
        return ExtractionPlan( requested_start, requested_start, True );

    # min() keeps the earliest keyframe on ties
    index = min( range( len( keyframes ) ), key=lambda i: abs( keyframes[i] - requested_start ) );
    keyframe = keyframes[index];
    gap = abs( keyframe - requested_start );

    if gap > settings.max_keyframe_gap:
        logger.info( f"Fixed {requested_start} to {keyframe}: reencode is needed" );
        return ExtractionPlan( requested_start, requested_start, True, keyframe, gap );

    logger.info( f"Fixed {requested_start} to {keyframe}: reencode is NOT needed" );
    if index + 1 < len( keyframes ):
        start = ( keyframe * 2 + keyframes[index + 1] ) / 3;
    else:
        start = keyframe + settings.keyframe_fallback_skew;

    return ExtractionPlan( requested_start, start, False, keyframe, gap );
