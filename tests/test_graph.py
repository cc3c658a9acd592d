"""ContentGraph ordering and addressing tests."""

import pytest

from trainplayer.player import ConfigurationError, ContentGraph
from trainplayer.schemas import Content, Module, Program


def build_program() -> Program:
    # Deliberately listed out of sequence order
    return Program(
        id="p1",
        title="Compliance",
        modules=[
            Module(id="m-late", title="Late", sequence_order=20, contents=[
                Content(id="c-late-2", title="Late 2", sequence_order=2),
                Content(id="c-late-1", title="Late 1", sequence_order=1),
            ]),
            Module(id="m-early", title="Early", sequence_order=10, contents=[
                Content(id="c-early-1", title="Early 1", sequence_order=5),
                Content(id="c-hidden", title="Hidden", sequence_order=6, is_active=False),
            ]),
            Module(id="m-retired", title="Retired", sequence_order=15, is_active=False, contents=[
                Content(id="c-retired", title="Retired", sequence_order=1),
            ]),
        ],
    )


class TestOrdering:

    def test_modules_sorted_by_sequence_order(self):
        graph = ContentGraph(build_program())
        assert graph.module_count() == 2
        assert graph.module_at(0).id == "m-early"
        assert graph.module_at(1).id == "m-late"

    def test_contents_sorted_and_inactive_skipped(self):
        graph = ContentGraph(build_program())
        assert graph.content_count(0) == 1
        assert graph.content_at(0, 0).id == "c-early-1"
        assert [c.id for c in graph.contents_of(1)] == ["c-late-1", "c-late-2"]

    def test_iter_positions_document_order(self):
        graph = ContentGraph(build_program())
        assert [(pos, c.id) for pos, c in graph.iter_positions()] == [
            ((0, 0), "c-early-1"),
            ((1, 0), "c-late-1"),
            ((1, 1), "c-late-2"),
        ]
        assert graph.total_content_count == 3


class TestAddressing:

    def test_is_last_content(self):
        graph = ContentGraph(build_program())
        assert graph.is_last_content(1, 1)
        assert not graph.is_last_content(1, 0)
        assert not graph.is_last_content(0, 0)

    def test_position_of(self):
        graph = ContentGraph(build_program())
        assert graph.position_of("c-late-2") == (1, 1)
        assert graph.get_content("c-late-1").title == "Late 1"

    def test_position_of_inactive_content(self):
        graph = ContentGraph(build_program())
        with pytest.raises(ConfigurationError):
            graph.position_of("c-hidden")

    def test_out_of_range(self):
        graph = ContentGraph(build_program())
        with pytest.raises(IndexError):
            graph.content_at(0, 1)
        with pytest.raises(IndexError):
            graph.content_count(5)

    def test_neighbours(self):
        graph = ContentGraph(build_program())
        assert graph.previous_position(0, 0) is None
        assert graph.previous_position(1, 0) == (0, 0)
        assert graph.next_position(0, 0) == (1, 0)
        assert graph.next_position(1, 1) is None


class TestEmptyPrograms:

    def test_zero_modules_is_not_ready(self):
        graph = ContentGraph(Program(id="p0", title="Draft"))
        assert graph.module_count() == 0
        assert not graph.is_ready

    def test_empty_middle_module_is_configuration_error(self):
        program = Program(id="p1", title="Broken", modules=[
            Module(id="m1", title="First", sequence_order=1, contents=[
                Content(id="c1", title="One", sequence_order=1),
            ]),
            Module(id="m2", title="Empty", sequence_order=2),
            Module(id="m3", title="Third", sequence_order=3, contents=[
                Content(id="c3", title="Three", sequence_order=1),
            ]),
        ])
        graph = ContentGraph(program)
        with pytest.raises(ConfigurationError):
            graph.previous_position(2, 0)
        with pytest.raises(ConfigurationError):
            graph.next_position(0, 0)
