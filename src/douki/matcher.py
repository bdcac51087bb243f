"""
Delay estimation by matching stored fingerprint sequences (needles) against
the fingerprints of a new media file (haystack).
"""
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .config import SyncSettings
from .fingerprint import FingerprintSequence
from .logging import get_logger
from .stats import filter_outliers, mean, standard_deviation
from .syncdata import SyncRecord


@dataclass
class MatchResult:
    """Alignment of one stored section against the haystack."""

    delay: float;          # Seconds to add to the section's subtitle times
    start: float;          # First confidently matched section time (seconds)
    end: float;            # Last confidently matched section time (seconds)
    match_count: int;      # Samples left after outlier filtering
    deviation: float;      # Deviation of those samples (offset units)
    record: Optional[SyncRecord] = None;

    def __repr__( self ):
        name = self.record.section_id if self.record else "?";
        return f"MatchResult({name}, delay={self.delay:.3f}s, " \
               f"from={self.start:.3f}s, to={self.end:.3f}s, count={self.match_count})";


# (needle offset, resolved delay)
MatchEntry = Tuple[int, int];


def build_hash_index( haystack: FingerprintSequence ) -> Dict[int, List[int]]:
    """Map each hash to its haystack offsets, in haystack order."""
    index = defaultdict( list );
    for offset, hash_ in haystack:
        index[hash_].append( offset );
    return index;


def collect_candidates( needle: FingerprintSequence, hash_index: Dict[int, List[int]] ) -> List[Tuple[int, List[int]]]:
    """Candidate delays (haystack offset - needle offset) per needle fingerprint."""
    candidates = [];
    for offset, hash_ in needle:
        offsets = hash_index.get( hash_ );
        if offsets:
            candidates.append( ( offset, [ other - offset for other in offsets ] ) );
    return candidates;


def resolve_candidates( candidates: List[Tuple[int, List[int]]] ) -> List[MatchEntry]:
    """
    Pick one delay per needle fingerprint.

    Ambiguous entries take the candidate closest to the delay resolved for the
    previous entry (the first entry compares against zero), since true matches
    cluster around a stable offset.
    """
    resolved = [];
    previous = 0;
    for offset, delays in candidates:
        if len( delays ) == 1:
            delay = delays[0];
        else:
            delay = min( delays, key=lambda value: abs( value - previous ) );
        resolved.append( ( offset, delay ) );
        previous = delay;
    return resolved;


def graduated_filter( delays: Sequence[int], settings: SyncSettings ) -> Tuple[List[int], float]:
    """
    Trim outliers with increasingly narrow quartile factors.

    A factor's result is accepted unless an earlier result exists and this
    one keeps fewer than ``min_match_count`` samples. Trimming stops as soon
    as the deviation drops below ``targeted_deviation``; otherwise the last
    accepted pass is the best achieved within the configured factors.

    Returns:
        Tuple of (filtered delays, their standard deviation)
    """
    filtered = None;
    deviation = math.inf;

    for factor in settings.filter_factors:
        current = filter_outliers( delays, factor, settings.iqr_multiplier );
        if filtered is not None and len( current ) < settings.min_match_count:
            break;
        filtered = current;
        deviation = standard_deviation( filtered ) if filtered else math.inf;
        if deviation < settings.targeted_deviation:
            break;

    return filtered or [], deviation;


def estimate_delay(
    haystack_index: Dict[int, List[int]],
    needle: FingerprintSequence,
    timing_factor: float,
    settings: SyncSettings
) -> Optional[Tuple[float, float, float, int, float]]:
    """
    Estimate the delay of one needle sequence.

    Returns:
        ``(delay, start, end, match_count, deviation)`` or None when the
        needle does not meet the confidence bar
    """
    entries = resolve_candidates( collect_candidates( needle, haystack_index ) );
    delays = [ delay for _, delay in entries ];
    filtered, deviation = graduated_filter( delays, settings );

    if not ( len( filtered ) > settings.min_match_count and deviation < settings.max_allowed_deviation ):
        return None;

    delay = max( 0.0, mean( filtered ) * timing_factor );
    kept = set( filtered );
    matched_times = [ offset for offset, value in entries if value in kept ];
    start = min( matched_times ) * timing_factor;
    end = max( matched_times ) * timing_factor;

    return delay, start, end, len( filtered ), deviation;


def estimate_delays(
    haystack: FingerprintSequence,
    needles: Sequence[FingerprintSequence],
    timing_factor: float,
    settings: SyncSettings = None,
    records: Sequence[SyncRecord] = None
) -> List[MatchResult]:
    """
    Match every needle sequence against the haystack.

    Needles that do not produce more than ``min_match_count`` samples with a
    deviation under ``max_allowed_deviation`` are left out; an empty list
    means nothing matched. Results keep the needle order.

    Args:
        haystack: Fingerprints of the new media file
        needles: Stored fingerprint sequences
        timing_factor: Seconds per offset unit
        settings: Thresholds (defaults when omitted)
        records: Optional records attached to the results, parallel to needles

    Returns:
        List of MatchResult for the matched needles
    """
    settings = settings or SyncSettings();
    logger = get_logger();
    hash_index = build_hash_index( haystack );

    results = [];
    for position, needle in enumerate( needles ):
        record = records[position] if records else None;
        estimate = estimate_delay( hash_index, needle, timing_factor, settings );
        if estimate is None:
            logger.debug( f"Section {record.section_id if record else position} did not match" );
            continue;
        results.append( MatchResult( *estimate, record=record ) );

    return results;


def match_records(
    haystack: FingerprintSequence,
    records: Sequence[SyncRecord],
    timing_factor: float,
    settings: SyncSettings = None
) -> List[MatchResult]:
    """Match stored sections, keeping a reference to each matched record."""
    return estimate_delays(
        haystack,
        [ record.fingerprints for record in records ],
        timing_factor,
        settings,
        records=list( records )
    );
