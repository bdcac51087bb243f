"""
Conversion between clock notation (``H:MM:SS.cc``) and seconds.
"""
from typing import Union


def parse_timestamp( value: Union[str, int, float] ) -> float:
    """
    Parse a timestamp into seconds.

    Accepts plain numbers and ``[[H:]M:]S[.frac]`` strings; every ``:``
    separated field is folded as ``total * 60 + field``.

    Raises:
        ValueError: If a field is not numeric.
    """
    if isinstance( value, ( int, float ) ):
        return float( value );

    total = 0.0;
    for part in str( value ).strip().split( ":" ):
        try:
            total = total * 60 + float( part );
        except ValueError:
            raise ValueError( f"Invalid timestamp: {value!r}" ) from None;
    return total;


def format_timestamp( seconds: float ) -> str:
    """Format seconds as ``H:MM:SS.cc``; negative values clamp to zero."""
    centiseconds = int( round( max( 0.0, seconds ) * 100 ) );
    hours, centiseconds = divmod( centiseconds, 360000 );
    minutes, centiseconds = divmod( centiseconds, 6000 );
    secs, centiseconds = divmod( centiseconds, 100 );
    return f"{hours}:{minutes:02d}:{secs:02d}.{centiseconds:02d}";
