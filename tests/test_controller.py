"""Tests for AnimationController"""

import numpy as np
import pytest

from posekit.animation import (
    AnimationChannel,
    AnimationClip,
    AnimationController,
    AnimationTarget,
    KeyframeTrack,
    RepeatMode,
    SceneGraph,
    Skin,
    WeightedAnimation,
)


def _slide(name="Slide", node_id=0, end=(10, 0, 0), duration=1.0):
    track = KeyframeTrack([0.0, duration], [(0, 0, 0), end])
    return AnimationClip(name, [AnimationChannel(node_id, AnimationTarget.TRANSLATION, track)])


def _constant(name, value, node_id=0):
    track = KeyframeTrack([0.0], [value])
    return AnimationClip(name, [AnimationChannel(node_id, AnimationTarget.TRANSLATION, track)])


def _controller(*clips, skins=()):
    graph = SceneGraph.from_parents([None, 0])
    return AnimationController(graph, list(clips), skins)


def test_initial_pose_is_authored():
    """Before any playback the globals hold the authored pose"""
    controller = _controller(_slide())
    assert np.allclose(controller.global_matrices, np.identity(4))


def test_play_and_update():
    """Playing a clip drives node translation from update()"""
    controller = _controller(_slide())
    handle = controller.play("Slide")

    assert controller.update(0.25)
    assert np.allclose(controller.transform_table.translations[0], (2.5, 0, 0))
    assert np.allclose(controller.get_global_matrix(1)[3, :3], (2.5, 0, 0))
    assert not controller.is_finished(handle)


def test_play_by_index_and_unknown_clip():
    """Clips are addressable by index; unknown ids raise KeyError"""
    controller = _controller(_slide("A"), _slide("B"))
    controller.play(1)
    assert controller.active[0].clip.name == "B"

    with pytest.raises(KeyError):
        controller.play("Missing")
    with pytest.raises(KeyError):
        controller.play(5)


def test_once_finishes_and_is_retained():
    """Finished entries report finished and stay until removed"""
    controller = _controller(_slide())
    handle = controller.play("Slide", RepeatMode.ONCE)

    assert not controller.update(1.5)
    assert controller.is_finished(handle)
    assert len(controller.active) == 1
    # Finished entries no longer contribute
    assert np.allclose(controller.transform_table.translations[0], (0, 0, 0))

    assert controller.remove_finished() == 1
    assert controller.active == []
    assert controller.is_finished(handle)


def test_count_mode_through_controller():
    """COUNT(n) plays n loops"""
    controller = _controller(_slide())
    handle = controller.play("Slide", RepeatMode.COUNT, repeat_count=3)

    controller.update(2.5)
    assert not controller.is_finished(handle)
    controller.update(0.6)
    assert controller.is_finished(handle)


def test_forever_wrap_law():
    """A FOREVER clip poses identically at t=0 and t=duration"""
    controller = _controller(_slide(end=(4, 2, 1), duration=2.0))
    controller.play("Slide")

    controller.play_tick(0.0)
    at_start = controller.global_matrices.copy()
    controller.play_tick(2.0)
    assert np.allclose(controller.global_matrices, at_start)


def test_stop_and_stop_all():
    """Stopping removes entries and restores the authored pose"""
    controller = _controller(_slide("A"), _constant("B", (0, 5, 0), node_id=1))
    a = controller.play("A")
    controller.play("B")

    assert controller.stop(a)
    assert not controller.stop(a)
    assert len(controller.active) == 1

    controller.stop_all()
    controller.update(0.1)
    assert controller.active == []
    assert np.allclose(controller.transform_table.translations, 0.0)


def test_play_weighted_blend():
    """Equal weights on (0,0,0) and (10,0,0) give (5,0,0)"""
    controller = _controller(_constant("Zero", (0, 0, 0)), _constant("Ten", (10, 0, 0)))
    controller.play_weighted([WeightedAnimation("Zero", 0.5), WeightedAnimation("Ten", 0.5)])
    controller.update(0.016)

    assert np.allclose(controller.transform_table.translations[0], (5, 0, 0))


def test_play_weighted_replaces_previous_set():
    """A new weighted set replaces the old one but keeps unweighted entries"""
    controller = _controller(_slide(), _constant("Zero", (0, 0, 0)), _constant("Ten", (10, 0, 0)))
    controller.play("Slide")
    controller.play_weighted([WeightedAnimation("Zero", 1.0)])
    controller.play_weighted([WeightedAnimation("Ten", 1.0)])

    names = [entry.clip.name for entry in controller.active]
    assert names == ["Slide", "Ten"]


def test_play_weighted_rejects_negative_weight():
    """Negative blend weights are rejected"""
    controller = _controller(_constant("Zero", (0, 0, 0)))
    with pytest.raises(ValueError):
        controller.play_weighted([WeightedAnimation("Zero", -1.0)])
    assert controller.active == []


def test_weighted_time_offset():
    """Weighted entries sample the controller clock plus their offset"""
    controller = _controller(_slide())
    controller.play_weighted([WeightedAnimation("Slide", 1.0, time_offset=0.5)])
    controller.update(0.25)

    assert np.allclose(controller.transform_table.translations[0], (7.5, 0, 0))


def test_weighted_one_shot_holds_final_pose():
    """One-shot weighted entries clamp at the clip end"""
    controller = _controller(_slide())
    controller.update(1.0)
    (handle,) = controller.play_weighted([WeightedAnimation("Slide", 1.0, optional_start=1.0)])

    controller.update(0.5)
    assert np.allclose(controller.transform_table.translations[0], (5, 0, 0))

    controller.update(2.0)
    assert controller.is_finished(handle)
    assert np.allclose(controller.transform_table.translations[0], (10, 0, 0))


def test_weighted_sub_ranges_of_one_clip_blend_independently():
    """Entries can loop different sections of the same clip"""
    controller = _controller(_slide("Strip", end=(20, 0, 0), duration=2.0))
    first, second = controller.play_weighted([
        WeightedAnimation("Strip", 0.5, end_time=1.0),
        WeightedAnimation("Strip", 0.5, start_time=1.0, end_time=2.0),
    ])

    controller.update(0.5)
    assert controller.get_active(first).sample_time() == pytest.approx(0.5)
    assert controller.get_active(second).sample_time() == pytest.approx(1.5)
    assert np.allclose(controller.transform_table.translations[0], (10, 0, 0))

    # Clock 1.5 wraps inside each one-second range
    controller.update(1.0)
    assert controller.get_active(first).sample_time() == pytest.approx(0.5)
    assert controller.get_active(second).sample_time() == pytest.approx(1.5)


def test_weighted_one_shot_sub_range_finishes_at_range_end():
    """One-shot entries clamp at the end of their own range"""
    controller = _controller(_slide("Strip", end=(20, 0, 0), duration=2.0))
    controller.update(1.0)
    (handle,) = controller.play_weighted([
        WeightedAnimation("Strip", 1.0, optional_start=1.0, start_time=0.5, end_time=1.0),
    ])

    controller.update(0.25)
    assert controller.get_active(handle).sample_time() == pytest.approx(0.75)
    assert not controller.is_finished(handle)

    controller.update(0.5)
    assert controller.get_active(handle).sample_time() == pytest.approx(1.0)
    assert controller.is_finished(handle)
    assert np.allclose(controller.transform_table.translations[0], (10, 0, 0))


def test_play_weighted_rejects_inverted_range():
    """A range ending before it starts is refused before anything changes"""
    controller = _controller(_slide())
    controller.play_weighted([WeightedAnimation("Slide", 1.0)])
    before = list(controller.active)

    with pytest.raises(ValueError):
        controller.play_weighted([WeightedAnimation("Slide", 1.0, start_time=0.8, end_time=0.2)])
    assert controller.active == before


def test_play_all_and_play_clips():
    """play_all() starts every clip; play_clips() a subset"""
    controller = _controller(_slide("A"), _slide("B", node_id=1))
    assert len(controller.play_all()) == 2

    controller.stop_all()
    controller.play_clips(["B"])
    assert [entry.clip.name for entry in controller.active] == ["B"]


def test_skinned_and_rigid_nodes_read_animated_pose():
    """Joint matrices and node globals come from the same animated frame"""
    skin = Skin("Body", joints=[1])
    controller = _controller(_slide(node_id=1), skins=[skin])
    controller.play("Slide")
    controller.update(0.5)

    joint = controller.get_joint_buffer(0)[0]
    assert np.allclose(joint[3, :3], (5, 0, 0))
    assert np.allclose(controller.get_global_matrix(1)[3, :3], (5, 0, 0))


def test_deep_hierarchy_updates():
    """Controllers pose graphs deeper than the recursion limit"""
    graph = SceneGraph.from_parents([None] + list(range(1499)))
    controller = AnimationController(graph, [_slide(node_id=1499)])
    controller.play("Slide")
    controller.update(0.5)

    assert np.allclose(controller.global_matrices[1499][3, :3], (5, 0, 0))
