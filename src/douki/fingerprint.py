"""
Landmark audio fingerprinting.

Spectral peaks are picked frame by frame and paired with later peaks in a
small target zone; every pair becomes a ``(frame offset, hash)`` fingerprint.
Matching two sequences then reduces to looking up equal hashes and comparing
their offsets.
"""
from typing import Iterable, List, Tuple

import numpy as np
from scipy import signal
from scipy.ndimage import maximum_filter1d


Fingerprint = Tuple[int, int];
FingerprintSequence = List[Fingerprint];


class Fingerprinter:
    """
    Streaming landmark fingerprinter for mono 16-bit PCM.

    Audio can be fed in chunks of any size through ``process``; the output
    does not depend on how the stream was split. Call ``flush`` once the
    stream ends to pair the remaining peaks.
    """

    def __init__(
        self,
        sample_rate: int = 22050,
        fft_size: int = 512,
        max_peaks_per_frame: int = 5,
        max_pairs_per_peak: int = 3,
        target_dt: int = 96,
        target_df: int = 60,
        peak_df: int = 8
    ):
        self.sample_rate = sample_rate;
        self.fft_size = fft_size;
        self.step = fft_size // 2;
        self.bins = fft_size // 2;
        self.max_peaks_per_frame = max_peaks_per_frame;
        self.max_pairs_per_peak = max_pairs_per_peak;
        self.target_dt = target_dt;
        self.target_df = target_df;
        self.peak_df = peak_df;

        self.window = signal.windows.hann( fft_size, sym=False ).astype( np.float32 );
        self.reset();

    @property
    def timing_factor( self ) -> float:
        """Seconds per fingerprint offset unit."""
        return self.step / self.sample_rate;

    def reset( self ):
        """Forget any buffered audio and pending peaks."""
        self._buffer = np.zeros( 0, dtype=np.float32 );
        self._frame = 0;
        self._peaks: List[Tuple[int, int]] = [];

    def process( self, samples: np.ndarray ) -> FingerprintSequence:
        """
        Consume a chunk of int16 samples.

        Returns:
            Fingerprints whose target zone is complete, ordered by offset
        """
        chunk = np.asarray( samples, dtype=np.float32 ) / 32768.0;
        buffer = np.concatenate( ( self._buffer, chunk ) );

        if len( buffer ) >= self.fft_size:
            frame_count = ( len( buffer ) - self.fft_size ) // self.step + 1;
            frames = np.lib.stride_tricks.sliding_window_view( buffer, self.fft_size )[::self.step][:frame_count];
            spectrum = np.abs( np.fft.rfft( frames * self.window, axis=1 ) )[:, :self.bins];
            self._collect_peaks( np.log1p( spectrum * 100 ) );
            self._frame += frame_count;
            buffer = buffer[frame_count * self.step:];

        self._buffer = buffer;
        return self._pair( final=False );

    def flush( self ) -> FingerprintSequence:
        """Pair every pending peak; the trailing partial frame is dropped."""
        fingerprints = self._pair( final=True );
        self._buffer = np.zeros( 0, dtype=np.float32 );
        return fingerprints;

    def fingerprint( self, samples: np.ndarray ) -> FingerprintSequence:
        """Fingerprint a complete buffer in one call."""
        self.reset();
        return self.process( samples ) + self.flush();

    def fingerprint_chunks( self, chunks: Iterable[np.ndarray] ) -> FingerprintSequence:
        """Fingerprint a stream of sample chunks."""
        self.reset();
        fingerprints = [];
        for chunk in chunks:
            fingerprints.extend( self.process( chunk ) );
        fingerprints.extend( self.flush() );
        return fingerprints;

    def _collect_peaks( self, spectrum: np.ndarray ):
        """Keep the strongest frequency-local maxima of every frame."""
        local_max = maximum_filter1d( spectrum, size=2 * self.peak_df + 1, axis=1, mode="constant" );
        threshold = spectrum.mean( axis=1, keepdims=True ) + spectrum.std( axis=1, keepdims=True );
        is_peak = ( spectrum == local_max ) & ( spectrum > threshold );

        for row in range( spectrum.shape[0] ):
            bins = np.flatnonzero( is_peak[row] );
            if len( bins ) > self.max_peaks_per_frame:
                strongest = np.argsort( spectrum[row, bins], kind="stable" )[::-1][:self.max_peaks_per_frame];
                bins = np.sort( bins[strongest] );
            frame = self._frame + row;
            self._peaks.extend( ( frame, int( freq ) ) for freq in bins );

    def _pair( self, final: bool ) -> FingerprintSequence:
        """Turn peaks into landmark hashes once their target zone is known."""
        peaks = self._peaks;
        last_frame = self._frame - 1;
        fingerprints = [];

        index = 0;
        while index < len( peaks ):
            t1, f1 = peaks[index];
            if not final and t1 + self.target_dt > last_frame:
                break;

            pairs = 0;
            for other in range( index + 1, len( peaks ) ):
                t2, f2 = peaks[other];
                dt = t2 - t1;
                if dt > self.target_dt:
                    break;
                if dt == 0 or abs( f2 - f1 ) >= self.target_df:
                    continue;
                fingerprints.append( ( t1, f1 + self.bins * ( f2 + self.bins * dt ) ) );
                pairs += 1;
                if pairs >= self.max_pairs_per_peak:
                    break;
            index += 1;

        self._peaks = peaks[index:];
        return fingerprints;
