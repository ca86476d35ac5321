#!/usr/bin/env python3
"""
Test suite for LabelSession: state handling, command buffer, images,
transports and debug capture
"""

import io

import pytest
from inline_snapshot import snapshot
from PIL import Image

from label_errors import (
    ImageUnavailable,
    InvalidPrimitiveParameter,
    SessionNotInitialized,
    StructuredFontRequiresSynchronousChannel,
    UnsupportedPrimitive,
)
from label_primitives import DriverCall, LabelSetup, PrinterFont, WindowsFont
from label_printing import LabelSession, SessionState
from label_transport import ChannelMode, RecordingTransport, StreamTransport, Transport, join_fragments


def checkerboard():
    img = Image.new("RGB", (2, 2), (255, 255, 255))
    img.putpixel((0, 0), (0, 0, 0))
    img.putpixel((1, 1), (0, 0, 0))
    return img


@pytest.fixture
def tspl():
    session = LabelSession("TSPL")
    session.new_label()
    return session


@pytest.fixture
def zpl():
    session = LabelSession("ZPL")
    session.new_label()
    return session


class TestStateGating:
    """Test that content needs new_label() first"""

    @pytest.mark.parametrize("call", [
        lambda s: s.add_text(0, 0, "AB"),
        lambda s: s.add_line(0, 0, width=10),
        lambda s: s.add_box(0, 0, 10, 10),
        lambda s: s.add_barcode(0, 0, "123"),
        lambda s: s.add_image(checkerboard()),
        lambda s: s.add_raw_command("CLS"),
        lambda s: s.print_label(),
    ])
    @pytest.mark.parametrize("language", ["TSPL", "ZPL"])
    def test_uninitialized(self, language, call):
        session = LabelSession(language)
        assert session.state is SessionState.UNINITIALIZED
        with pytest.raises(SessionNotInitialized):
            call(session)
        assert session.buffer == []

    def test_new_label_activates(self):
        session = LabelSession("TSPL")
        session.new_label()
        assert session.is_initialized
        assert session.add_text(0, 0, "AB", font="2") == ['TEXT 0,0,"2",0,1,1,1,"AB"']

    def test_new_label_resets_buffer(self, tspl):
        tspl.add_text(0, 0, "first")
        tspl.new_label(width_mm=50, height_mm=25)
        assert tspl.state is SessionState.ACTIVE
        assert tspl.buffer[0] == "SIZE 50 mm,25 mm"
        assert not any("first" in f for f in tspl.buffer)

    def test_print_keeps_session_open(self, tspl):
        tspl.print_label()
        assert tspl.buffer == []
        assert tspl.is_initialized
        assert tspl.add_raw_command("CLS") == ["CLS"]


class TestTsplLabel:
    """Test complete TSPL labels"""

    def test_full_label(self, tspl):
        tspl.add_text(0, 0, "123000003", font="2")
        tspl.add_text(0, 30, "ABCDefghi", font="2")
        tspl.add_line(0, 60, width=30, thickness=3)
        tspl.add_barcode(0, 70, "SW1234578", barcode_type="128", height=50)
        tspl.add_box(0, 130, 200, 180, thickness=2)
        tspl.add_raw_command("DIRECTION 1,0")
        assert tspl.print_label() == snapshot([
            "SIZE 101.6 mm,152.4 mm",
            "SPEED 5",
            "DENSITY 8",
            "GAP 3 mm,0 mm",
            "CLS",
            'TEXT 0,0,"2",0,1,1,1,"123000003"',
            'TEXT 0,30,"2",0,1,1,1,"ABCDefghi"',
            "BAR 0,60,30,3",
            'BARCODE 0,70,"128",50,2,0,3,5,1,"SW1234578"',
            "BOX 0,130,200,180,2,0",
            "DIRECTION 1,0",
            "PRINT 1,1",
        ])

    def test_default_font_scale(self, tspl):
        assert tspl.add_text(0, 0, "AB") == ['TEXT 0,0,"0",0,8,8,1,"AB"']
        assert tspl.add_text(0, 0, "AB", x_multiplication=2) == ['TEXT 0,0,"0",0,2,8,1,"AB"']

    def test_setup_object_and_overrides(self):
        session = LabelSession("TSPL")
        session.new_label(LabelSetup(width_mm=76.2, height_mm=25.4), sensor="blackMark", character_set="850")
        assert session.buffer == snapshot([
            "SIZE 76.2 mm,25.4 mm",
            "SPEED 5",
            "DENSITY 8",
            "BLINE 3 mm,0 mm",
            "CLS",
            "CODEPAGE 850",
        ])

    def test_image_as_bars(self, tspl):
        assert tspl.add_image(checkerboard()) == ["BAR 1,1,1,1", "BAR 2,2,1,1"]

    def test_image_offset(self, tspl):
        assert tspl.add_image(checkerboard(), x=10, y=20) == ["BAR 11,21,1,1", "BAR 12,22,1,1"]

    def test_image_threshold(self, tspl):
        img = Image.new("RGB", (4, 1), (100, 100, 100))
        assert tspl.add_image(img) == ["BAR 1,1,4,1"]
        tspl.brightness_threshold = 90
        assert tspl.add_image(img) == []

    def test_image_from_file(self, tspl, tmp_path):
        path = tmp_path / "logo.png"
        checkerboard().save(path)
        assert tspl.add_image(str(path)) == ["BAR 1,1,1,1", "BAR 2,2,1,1"]

    def test_command_string(self, tspl):
        tspl.add_raw_command("HOME")
        assert tspl.command_string().endswith("CLS\r\nHOME")

    def test_mm_to_dots(self):
        assert LabelSession("TSPL").mm_to_dots(2) == 16
        assert LabelSession("TSPL", dots_per_mm=11.8).mm_to_dots(2) == 24


class TestZplLabel:
    """Test complete ZPL labels"""

    def test_setup(self):
        session = LabelSession("ZPL")
        assert session.new_label(character_set=None) == ["^XA", "^CI28"]

    def test_full_label(self, zpl):
        zpl.add_text(100, 100, "Español", character_height=50, character_width=50)
        zpl.add_line(0, 160, width=400, thickness=3)
        zpl.add_box(10, 10, 200, 100)
        zpl.add_image(checkerboard(), x=5, y=6)
        assert zpl.print_label(copies=2) == snapshot([
            "^XA",
            "^CI28",
            "^FO100,100^A0N,50,50^FDEspañol^FS",
            "^FO0,160^GB400,0,3,B,0^FS",
            "^FO10,10^GB190,90,1,B,0^FS",
            "^FO5,6^GFA,1,1,1,80\n40^FS",
            "^PQ2",
            "^XZ",
        ])

    def test_command_string(self, zpl):
        zpl.add_raw_command("^PW812")
        assert zpl.command_string() == "^XA\n^CI28\n^PW812"


class TestFailuresAreAtomic:
    """A failing primitive leaves the buffer untouched"""

    def test_missing_image(self, tspl, tmp_path):
        before = tspl.buffer
        with pytest.raises(ImageUnavailable):
            tspl.add_image(str(tmp_path / "missing.png"))
        assert tspl.buffer == before

    def test_zpl_barcode(self, zpl):
        with pytest.raises(UnsupportedPrimitive):
            zpl.add_barcode(0, 0, "123")
        assert zpl.buffer == ["^XA", "^CI28"]

    def test_bad_rotation(self, tspl):
        before = tspl.buffer
        with pytest.raises(InvalidPrimitiveParameter):
            tspl.add_text(0, 0, "x", rotation=45)
        assert tspl.buffer == before

    def test_structured_font_on_batch_channel(self, tspl):
        before = tspl.buffer
        with pytest.raises(StructuredFontRequiresSynchronousChannel):
            tspl.add_text(0, 0, "x", font=PrinterFont("3"))
        assert tspl.buffer == before


class TestTransports:
    """Test incremental and batch dispatch"""

    def test_incremental_sends_as_produced(self):
        transport = RecordingTransport(ChannelMode.INCREMENTAL)
        session = LabelSession("TSPL", transport=transport)
        assert session.backend.synchronous_channel is True

        session.new_label()
        session.add_text(400, 200, "DEG 0", font=WindowsFont("Arial", 48))
        assert transport.sent == [
            DriverCall("setup", ("101.6", "152.4", "5", "8", "0", "3", "0")),
            DriverCall("clearbuffer"),
            DriverCall("windowsfont", ("400", "200", "48", "0", "0", "0", "Arial", "DEG 0")),
        ]

        session.print_label(1, 2)
        assert transport.batches[-1] == [DriverCall("printlabel", ("1", "2"))]

    def test_batch_sends_on_print(self):
        transport = RecordingTransport(ChannelMode.BATCH)
        session = LabelSession("ZPL", transport=transport)
        session.new_label()
        session.add_text(0, 0, "Hi")
        assert transport.sent == []
        finalized = session.print_label()
        assert transport.batches == [finalized]

    def test_rejected_fragments_stay_out_of_buffer(self):
        class FlakyTransport(Transport):
            mode = ChannelMode.INCREMENTAL

            def send(self, fragments):
                if "FAIL" in fragments:
                    raise OSError("printer went away")

        session = LabelSession("TSPL", transport=FlakyTransport())
        session.new_label()
        before = session.buffer
        with pytest.raises(OSError):
            session.add_raw_command("FAIL")
        assert session.buffer == before

    def test_stream_transport(self):
        stream = io.BytesIO()
        session = LabelSession("TSPL", transport=StreamTransport(stream, separator="\r\n"))
        assert session.backend.synchronous_channel is False
        session.new_label()
        session.add_text(0, 0, "AB", font="2")
        session.print_label()
        assert stream.getvalue() == snapshot(
            b'SIZE 101.6 mm,152.4 mm\r\nSPEED 5\r\nDENSITY 8\r\nGAP 3 mm,0 mm\r\nCLS\r\nTEXT 0,0,"2",0,1,1,1,"AB"\r\nPRINT 1,1\r\n'
        )

    def test_join_keeps_raw_bytes(self):
        assert join_fragments(["^XA", b"\x00\x01", "^XZ"]) == b"^XA\n\x00\x01\n^XZ"

    def test_join_rejects_driver_calls(self):
        with pytest.raises(UnsupportedPrimitive):
            join_fragments([DriverCall("clearbuffer")])


class TestDebugCapture:
    """Test debug_info contents"""

    def test_disabled_by_default(self, tspl):
        tspl.add_text(0, 0, "AB")
        assert tspl.debug_info == []

    def test_records_resolved_parameters(self):
        session = LabelSession("TSPL", debug=True)
        session.new_label()
        session.add_text(0, 0, "AB", font="0")
        session.add_image(checkerboard(), x=3, y=4)
        session.print_label()

        kinds = [entry["primitive"] for entry in session.debug_info]
        assert kinds == ["setup", "text", "image", "print"]

        text = session.debug_info[1]
        assert text["parameters"]["scale_x"] == 8
        assert text["fragments"] == ['TEXT 0,0,"0",0,8,8,1,"AB"']

        image = session.debug_info[2]
        assert image["parameters"] == snapshot({
            "x": 3, "y": 4, "width": 2, "height": 2, "threshold": 127.5, "lines": 2,
            "line_parameters": [
                {"x": 4, "y": 5, "width": 1, "height": 1, "thickness": 1, "corner_radius": 0, "border_color": "black"},
                {"x": 5, "y": 6, "width": 1, "height": 1, "thickness": 1, "corner_radius": 0, "border_color": "black"},
            ],
        })
        assert image["fragments"] == ["BAR 4,5,1,1", "BAR 5,6,1,1"]

        assert session.debug_info[3]["commands"].endswith("BAR 5,6,1,1\r\nPRINT 1,1")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
