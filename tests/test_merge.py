"""
Test cases for merging matched sections into one script.
"""
import pysubs2
import pytest
from pathlib import Path
import sys

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from douki.matcher import MatchResult
from douki.merge import merge_tracks, random_style_names, reconcile_styles, shift_events
from douki.syncdata import SyncRecord


def event( start: float, end: float, text: str, style: str = "Default", type_: str = "Dialogue" ) -> pysubs2.SSAEvent:
    return pysubs2.SSAEvent(
        start=pysubs2.make_time( s=start ),
        end=pysubs2.make_time( s=end ),
        text=text,
        style=style,
        type=type_
    );


def match( section_id: str, delay: float, start: float, end: float, attachments=() ) -> MatchResult:
    record = SyncRecord( section_id, [], Path( f"{section_id}.ass" ), list( attachments ) );
    return MatchResult( delay, start, end, 20, 0.0, record=record );


def counter_names():
    names = iter( f"style{number}" for number in range( 100 ) );
    return lambda: next( names );


@pytest.fixture
def documents():
    """Primary covering [0, 100] and secondary covering [80, 150]."""
    primary = pysubs2.SSAFile();
    primary.info["Title"] = "1";
    primary.events = [
        event( 0, 1, "note", type_="Comment" ),
        event( 10, 12, "A" ),
        event( 95, 98, "B" ),
        event( 120, 122, "outside primary" )
    ];

    secondary = pysubs2.SSAFile();
    secondary.styles["Sign"] = pysubs2.SSAStyle( fontsize=40 );
    secondary.events = [
        event( 70, 79, "before secondary" ),
        event( 85, 87, "E" ),
        event( 140, 142, "F", style="Sign" ),
        event( 160, 161, "after secondary" ),
        event( 90, 91, "secondary comment", type_="Comment" )
    ];

    return { Path( "1.ass" ): primary, Path( "2.ass" ): secondary };


class TestMergeTracks:
    """Test the two section merge scenario."""

    def test_merge_two_sections( self, documents ):
        matches = [ match( "1", 5, 0, 100 ), match( "2", -3, 80, 150 ) ];

        result = merge_tracks( matches, loader=documents.get, name_factory=counter_names() );
        events = result.document.events;

        assert [ item.text for item in events ] == [ "note", "A", "E", "B", "F" ];
        assert events[0].type == "Comment";
        assert events[0].start == 0;

        starts = [ item.start for item in events if item.type == "Dialogue" ];
        assert starts == sorted( starts );
        assert starts == [ 15000, 82000, 100000, 137000 ];

    def test_colliding_style_is_renamed( self, documents ):
        matches = [ match( "1", 5, 0, 100 ), match( "2", -3, 80, 150 ) ];

        result = merge_tracks( matches, loader=documents.get, name_factory=counter_names() );
        styles = result.document.styles;

        assert set( styles ) == { "Default", "style0", "Sign" };
        by_text = { item.text: item for item in result.document.events };
        assert by_text["A"].style == "Default";
        assert by_text["E"].style == "style0";
        assert by_text["F"].style == "Sign";

    def test_primary_script_is_the_skeleton( self, documents ):
        result = merge_tracks( [ match( "1", 5, 0, 100 ), match( "2", 0, 80, 150 ) ], loader=documents.get );
        assert result.document.info["Title"] == "1";

    def test_single_section( self, documents ):
        result = merge_tracks( [ match( "2", 1, 80, 150 ) ], loader=documents.get );

        assert [ item.text for item in result.document.events ] == [ "secondary comment", "E", "F" ];

    def test_attachments_of_every_section( self, documents ):
        matches = [
            match( "1", 0, 0, 100, attachments=[ Path( "a.ttf" ) ] ),
            match( "2", 0, 80, 150, attachments=[ Path( "b.otf" ), Path( "c.ttf" ) ] )
        ];

        result = merge_tracks( matches, loader=documents.get );
        assert result.attachments == [ Path( "a.ttf" ), Path( "b.otf" ), Path( "c.ttf" ) ];

    def test_empty_matches_raise( self ):
        with pytest.raises( ValueError ):
            merge_tracks( [] );

    def test_sources_are_not_modified( self, documents ):
        merge_tracks( [ match( "1", 0, 0, 100 ), match( "2", 5, 80, 150 ) ], loader=documents.get );
        assert documents[Path( "2.ass" )].events[1].start == 85000;


class TestShiftEvents:
    """Test windowing and shifting of single tracks."""

    def test_primary_clamps_and_drops_negative_lines( self ):
        events = [ event( 2, 4, "gone" ), event( 3, 8, "clamped" ), event( 10, 11, "kept" ) ];
        shifted = shift_events( events, match( "1", -5, 0, 100 ), primary=True );

        assert [ item.text for item in shifted ] == [ "clamped", "kept" ];
        assert ( shifted[0].start, shifted[0].end ) == ( 0, 3000 );
        assert ( shifted[1].start, shifted[1].end ) == ( 5000, 6000 );

    def test_secondary_is_not_clamped( self ):
        shifted = shift_events( [ event( 3, 8, "line" ) ], match( "2", -5, 0, 100 ) );
        assert ( shifted[0].start, shifted[0].end ) == ( -2000, 3000 );

    def test_window_edges_are_inclusive( self ):
        events = [ event( 100, 101, "starts at end" ), event( 5, 10, "ends at start" ) ];
        shifted = shift_events( events, match( "1", 0, 10, 100 ) );

        assert [ item.text for item in shifted ] == [ "starts at end", "ends at start" ];


class TestStyleNames:
    """Test style reconciliation helpers."""

    def test_seeded_names_repeat( self ):
        first = random_style_names( 3 );
        second = random_style_names( 3 );

        names = [ first() for _ in range( 5 ) ];
        assert names == [ second() for _ in range( 5 ) ];
        assert all( len( name ) == 8 for name in names );

    def test_generated_name_collisions_are_redrawn( self ):
        names = iter( [ "Sign", "Default", "fresh" ] );
        merged = { "Default": pysubs2.SSAStyle(), "Sign": pysubs2.SSAStyle() };
        track = { "Default": pysubs2.SSAStyle() };

        appended, renamed = reconcile_styles( merged, track, lambda: next( names ) );

        assert renamed == { "Default": "fresh" };
        assert list( appended ) == [ "fresh" ];
