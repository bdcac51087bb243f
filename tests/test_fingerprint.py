"""
Test cases for the landmark fingerprinter.
"""
import numpy as np
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from douki.fingerprint import Fingerprinter
from douki.matcher import estimate_delays


def noise( seconds: float, seed: int = 7, sample_rate: int = 22050 ) -> np.ndarray:
    """Deterministic broadband test signal."""
    rng = np.random.default_rng( seed );
    return ( rng.standard_normal( int( seconds * sample_rate ) ) * 6000 ).astype( np.int16 );


class TestFingerprinter:
    """Test fingerprint extraction properties."""

    def test_timing_factor( self ):
        assert Fingerprinter().timing_factor == pytest.approx( 256 / 22050 );

    def test_produces_ordered_fingerprints( self ):
        fingerprints = Fingerprinter().fingerprint( noise( 3 ) );

        assert len( fingerprints ) > 100;
        offsets = [ offset for offset, _ in fingerprints ];
        assert offsets == sorted( offsets );
        assert all( isinstance( hash_, int ) for _, hash_ in fingerprints );

    def test_deterministic( self ):
        samples = noise( 2 );
        assert Fingerprinter().fingerprint( samples ) == Fingerprinter().fingerprint( samples );

    def test_chunking_does_not_change_output( self ):
        samples = noise( 3 );
        whole = Fingerprinter().fingerprint( samples );

        chunks = [ samples[:100], samples[100:1000], samples[1000:5555], samples[5555:40000], samples[40000:] ];
        assert Fingerprinter().fingerprint_chunks( chunks ) == whole;

        small_chunks = [ samples[start:start + 300] for start in range( 0, len( samples ), 300 ) ];
        assert Fingerprinter().fingerprint_chunks( small_chunks ) == whole;

    def test_silence_has_no_fingerprints( self ):
        assert Fingerprinter().fingerprint( np.zeros( 22050, dtype=np.int16 ) ) == [];

    def test_short_input_has_no_fingerprints( self ):
        assert Fingerprinter().fingerprint( noise( 0.01 ) ) == [];

    def test_reset_between_runs( self ):
        fingerprinter = Fingerprinter();
        first = fingerprinter.fingerprint( noise( 1, seed=1 ) );
        fingerprinter.fingerprint( noise( 1, seed=2 ) );
        assert fingerprinter.fingerprint( noise( 1, seed=1 ) ) == first;


class TestFingerprintMatching:
    """End to end matching on real fingerprints."""

    def test_self_match( self ):
        fingerprinter = Fingerprinter();
        fingerprints = fingerprinter.fingerprint( noise( 4 ) );

        results = estimate_delays( fingerprints, [ fingerprints ], fingerprinter.timing_factor );

        assert len( results ) == 1;
        assert results[0].delay == pytest.approx( 0.0 );
        assert results[0].match_count == len( fingerprints );
        assert results[0].deviation == pytest.approx( 0.0 );

    def test_leading_silence_is_found_as_delay( self ):
        fingerprinter = Fingerprinter();
        samples = noise( 4 );
        frames = 40;
        shifted = np.concatenate( ( np.zeros( frames * fingerprinter.step, dtype=np.int16 ), samples ) );

        needle = fingerprinter.fingerprint( samples );
        haystack = fingerprinter.fingerprint( shifted );
        results = estimate_delays( haystack, [ needle ], fingerprinter.timing_factor );

        assert len( results ) == 1;
        assert results[0].delay == pytest.approx( frames * fingerprinter.timing_factor );

