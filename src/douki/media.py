"""
Media helpers built on ffmpeg/ffprobe: probing, keyframe listing, cutting,
audio decoding and the side files stored with every section.
"""
import math
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import ffmpeg
import numpy as np

from .config import SyncSettings
from .exceptions import ExtractionError, MediaProbeError
from .fingerprint import Fingerprinter, FingerprintSequence
from .logging import get_logger


PTS_TIME_PATTERN = re.compile( r"pts_time:(\d+\.?\d*)" );
KEYFRAMES_HEADER = "# keyframe format v1\r\nfps 0\r\n";


@dataclass( frozen=True )
class MediaInfo:
    """Subset of ffprobe output the engine cares about."""

    duration: float;
    has_video: bool;


def _stderr_text( error: ffmpeg.Error ) -> str:
    return ( error.stderr or b"" ).decode( "utf-8", errors="replace" ).strip();


class MediaProcessor:
    """
    Thin wrapper around ffmpeg-python for the operations sections need.

    Features:
    - Duration / video stream detection
    - Keyframe listing in a window around a start time
    - Lossless or re-encoding section cuts
    - Streaming PCM decode for fingerprinting
    - Scene keyframe files, subtitle and attachment extraction
    """

    def __init__( self, settings: SyncSettings = None, debug: bool = False ):
        self.settings = settings or SyncSettings();
        self.logger = get_logger( debug=debug );
        self.chunk_size = 1 << 16;  # bytes read from the decoder per chunk

    def probe( self, media_file: Path ) -> MediaInfo:
        """
        Probe duration and stream types.

        Raises:
            MediaProbeError: If ffprobe fails or reports no duration
        """
        try:
            info = ffmpeg.probe( str( media_file ) );
        except ffmpeg.Error as e:
            raise MediaProbeError( f"ffprobe failed for {media_file}: {_stderr_text( e )}" ) from e;

        try:
            duration = float( info["format"]["duration"] );
        except ( KeyError, TypeError, ValueError ) as e:
            raise MediaProbeError( f"No duration reported for {media_file}" ) from e;

        has_video = any( stream.get( "codec_type" ) == "video" for stream in info.get( "streams", [] ) );
        self.logger.debug( f"Probed {media_file}: duration={duration:.2f}s, video={has_video}" );
        return MediaInfo( duration, has_video );

    def list_keyframes( self, media_file: Path, around: float = 0.0 ) -> List[float]:
        """
        List video keyframe times within the configured window around a time.

        A failing probe yields an empty list so the caller falls back to
        re-encoding.
        """
        window = self.settings.keyframe_window;
        interval = f"{math.floor( around - window )}%+{int( window * 2 )}";

        try:
            info = ffmpeg.probe(
                str( media_file ),
                skip_frame="nokey",
                select_streams="v",
                show_frames=None,
                show_entries="frame=best_effort_timestamp_time",
                read_intervals=interval
            );
        except ffmpeg.Error as e:
            self.logger.warning( f"Keyframe probe failed for {media_file}: {_stderr_text( e )}" );
            return [];

        keyframes = [];
        for frame in info.get( "frames", [] ):
            try:
                keyframes.append( float( frame["best_effort_timestamp_time"] ) );
            except ( KeyError, TypeError, ValueError ):
                continue;

        self.logger.debug( f"Found {len( keyframes )} keyframes around {around}s" );
        return keyframes;

    def cut( self, media_file: Path, start: float, end: float, reencode: bool, output_file: Path ) -> Path:
        """
        Cut ``[start, end]`` out of a media file.

        Stream copy when ``reencode`` is False; otherwise video is re-encoded
        at a low fixed quality and scale while audio is copied.

        Raises:
            ExtractionError: If ffmpeg fails
        """
        settings = self.settings;
        stream = ffmpeg.input( str( media_file ), ss=f"{start:.5f}", to=f"{end:.5f}" );

        if reencode:
            stream = stream.output(
                str( output_file ),
                map="0",
                avoid_negative_ts="make_zero",
                preset=settings.reencode_preset,
                crf=settings.reencode_crf,
                vf=settings.reencode_scale,
                **{ "codec:a": "copy", "codec:v": settings.reencode_codec }
            );
        else:
            stream = stream.output(
                str( output_file ),
                map="0",
                avoid_negative_ts="make_zero",
                codec="copy"
            );

        mode = "reencoding" if reencode else "copying";
        self.logger.info( f"Cutting {media_file} from {start:.3f}s to {end:.3f}s ({mode})" );
        self._run( stream, f"cut {media_file}" );
        return Path( output_file );

    def decode_audio( self, media_file: Path ) -> Iterator[np.ndarray]:
        """
        Decode the first audio stream to mono int16 PCM, chunk by chunk.

        Raises:
            ExtractionError: If the decoder exits with an error
        """
        process = (
            ffmpeg
            .input( str( media_file ) )
            .output( "pipe:", format="s16le", acodec="pcm_s16le", ac=1, ar=self.settings.sample_rate )
            .global_args( "-v", "fatal", "-nostdin" )
            .run_async( pipe_stdout=True, pipe_stderr=True )
        );

        pending = b"";
        try:
            while True:
                data = process.stdout.read( self.chunk_size );
                if not data:
                    break;
                data = pending + data;
                usable = len( data ) - len( data ) % 2;
                pending = data[usable:];
                if usable:
                    yield np.frombuffer( data[:usable], dtype=np.int16 );
        finally:
            process.stdout.close();
            stderr = process.stderr.read();
            process.stderr.close();
            returncode = process.wait();

        if returncode != 0:
            message = stderr.decode( "utf-8", errors="replace" ).strip();
            raise ExtractionError( f"Audio decode failed for {media_file}: {message}" );

    def extract_fingerprints( self, media_file: Path, fingerprinter: Fingerprinter = None ) -> FingerprintSequence:
        """Decode a file's audio and fingerprint it."""
        fingerprinter = fingerprinter or Fingerprinter( sample_rate=self.settings.sample_rate );
        self.logger.info( f"Extracting fingerprints from {media_file}" );
        fingerprints = fingerprinter.fingerprint_chunks( self.decode_audio( media_file ) );
        self.logger.info( f"Extracted {len( fingerprints )} fingerprints from {Path( media_file ).name}" );
        return fingerprints;

    def video_fps( self, media_file: Path ) -> float:
        """Average frame rate of the first video stream."""
        try:
            info = ffmpeg.probe( str( media_file ), select_streams="v", skip_frame="nokey" );
            numerator, _, denominator = info["streams"][0]["avg_frame_rate"].partition( "/" );
            return float( numerator ) / float( denominator or 1 );
        except ffmpeg.Error as e:
            raise MediaProbeError( f"Frame rate probe failed for {media_file}: {_stderr_text( e )}" ) from e;
        except ( IndexError, KeyError, ValueError, ZeroDivisionError ) as e:
            raise MediaProbeError( f"No usable frame rate for {media_file}" ) from e;

    def detect_scenes( self, media_file: Path, threshold: float = None ) -> List[float]:
        """Timestamps (seconds) of scene changes above the threshold."""
        threshold = self.settings.scene_threshold if threshold is None else threshold;
        stream = (
            ffmpeg
            .input( str( media_file ) )
            .output( "-", vf=f"select='gt(scene,{threshold})',showinfo", format="null" )
        );
        try:
            _, stderr = stream.run( capture_stdout=True, capture_stderr=True );
        except ffmpeg.Error as e:
            raise ExtractionError( f"Scene detection failed for {media_file}: {_stderr_text( e )}" ) from e;

        return parse_scene_timestamps( stderr.decode( "utf-8", errors="replace" ) );

    def write_keyframes_file( self, media_file: Path, output_file: Path ) -> Path:
        """Write an Aegisub keyframe file with the detected scene changes."""
        fps = self.video_fps( media_file );
        scenes = self.detect_scenes( media_file );
        Path( output_file ).write_text( format_keyframes( scenes, fps ), encoding="utf-8", newline="" );
        self.logger.info( f"Wrote {len( scenes )} scene keyframes to {output_file}" );
        return Path( output_file );

    def extract_subtitle( self, source_file: Path, output_file: Path, start: Optional[float] = None, end: Optional[float] = None ) -> bool:
        """
        Convert (and optionally cut) the subtitle stream of a file.

        Returns:
            True when a non-empty subtitle file was written
        """
        stream = self._subtitle_stream( source_file, output_file, start, end );
        try:
            stream.run( overwrite_output=True, quiet=True );
        except ffmpeg.Error as e:
            self.logger.warning( f"No subtitle extracted from {source_file}: {_stderr_text( e )}" );
            return False;

        output_file = Path( output_file );
        return output_file.exists() and output_file.stat().st_size > 0;

    def _subtitle_stream( self, source_file: Path, output_file: Path, start: Optional[float], end: Optional[float] ):
        """
        Build the subtitle extraction command.

        A media file is converted without stream mapping so ffmpeg picks its
        subtitle stream for the ``.ass`` output. Cutting a window out of a
        standalone subtitle file maps all of its streams.
        """
        options = {};
        if start is not None or end is not None:
            options["map"] = "0";
        if start is not None:
            options["ss"] = f"{start:.5f}";
        if end is not None:
            options["to"] = f"{end:.5f}";

        return ffmpeg.input( str( source_file ) ).output( str( output_file ), **options );

    def dump_attachments( self, media_file: Path, directory: Path ) -> List[Path]:
        """
        Dump every attachment (fonts) of a file into a directory.

        ffmpeg writes attachments relative to its working directory and exits
        with an error because no output is given, so the exit status is
        ignored and the directory contents are returned instead.
        """
        directory = Path( directory );
        directory.mkdir( parents=True, exist_ok=True );

        args = [ "ffmpeg", "-nostdin", "-y", "-dump_attachment:t", "", "-i", str( Path( media_file ).resolve() ) ];
        self.logger.debug( f"Dumping attachments: {' '.join( args )}" );
        subprocess.run( args, cwd=str( directory ), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False );

        return sorted( path for path in directory.iterdir() if path.is_file() );

    def _run( self, stream, description: str ):
        try:
            stream.run( overwrite_output=True, quiet=True );
        except ffmpeg.Error as e:
            raise ExtractionError( f"ffmpeg failed to {description}: {_stderr_text( e )}" ) from e;


def parse_scene_timestamps( showinfo_log: str ) -> List[float]:
    """Pull ``pts_time`` values out of ffmpeg showinfo output."""
    timestamps = [];
    for line in showinfo_log.splitlines():
        match = PTS_TIME_PATTERN.search( line );
        if match:
            timestamps.append( float( match.group( 1 ) ) );
    return timestamps;


def format_keyframes( timestamps: List[float], fps: float ) -> str:
    """Render scene timestamps as an Aegisub "keyframe format v1" file."""
    frames = [ str( math.floor( timestamp * fps + 0.5 ) ) for timestamp in timestamps ];
    return KEYFRAMES_HEADER + "\r\n".join( frames + [ "" ] );
