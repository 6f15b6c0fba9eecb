"""
Tests for the command line entry point
"""

import json
from unittest.mock import patch

import pytest

from roomtrace.__main__ import main
from roomtrace.services.pipeline_orchestrator import (
    ExtractionResult,
    ResultMetadata,
    PipelineDiagnostics,
)
from roomtrace.services.room_geometry import Room


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("roomtrace.__main__.setup_logging"):
        yield


class TestCli:

    def test_prints_json(self, tmp_path, make_ring, capsys):
        result = ExtractionResult(
            rooms=(Room(id="room-001", boundary=make_ring(0, 0, 10, 10), name="KITCHEN"),),
            metadata=ResultMetadata(),
            diagnostics=PipelineDiagnostics(page_width=100, page_height=100),
        )
        with patch("roomtrace.__main__.PipelineOrchestrator") as orchestrator_cls:
            orchestrator_cls.return_value.run_document.return_value = result
            code = main(["plans/house.pdf", "--page", "1", "--settings", str(tmp_path / "s.json")])

        assert code == 0
        orchestrator_cls.return_value.run_document.assert_called_once_with("plans/house.pdf", 1, "pymupdf")
        output = json.loads(capsys.readouterr().out)
        assert output["source"]["fileName"] == "house.pdf"
        assert output["source"]["pageIndex"] == 1
        assert output["rooms"][0]["name"] == "KITCHEN"

    def test_unavailable_backend(self, tmp_path):
        code = main(["plan.pdf", "--backend", "raster", "--settings", str(tmp_path / "s.json")])

        assert code == 1

    def test_missing_document(self, tmp_path, capsys):
        code = main([str(tmp_path / "missing.pdf"), "--settings", str(tmp_path / "s.json")])

        assert code == 1
        assert capsys.readouterr().out == ""
