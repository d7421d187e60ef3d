"""Tests for AnimatedModel"""

import logging

import numpy as np

from posekit.animation import (
    AnimationChannel,
    AnimationClip,
    AnimationTarget,
    KeyframeTrack,
    Node,
    SceneGraph,
    Skin,
)
from posekit.loaders import AnimatedModel


class FakeUniform:
    def __init__(self):
        self.data = None

    def write(self, data):
        self.data = data


class FakeProgram(dict):
    """Mimics the `name in program` / `program[name].write()` API of shader programs."""


def _model():
    # 0: armature root, 1: bone (joint), 2: skinned mesh, 3: rigid prop
    graph = SceneGraph([
        Node(0, name="Armature", children=[1, 2]),
        Node(1, name="Bone"),
        Node(2, name="Body", mesh=0, skin=0),
        Node(3, name="Prop", mesh=1),
    ])
    slide = KeyframeTrack([0.0, 1.0], [(0, 0, 0), (2, 0, 0)])
    clip = AnimationClip("Move", [
        AnimationChannel(1, AnimationTarget.TRANSLATION, slide),
        AnimationChannel(3, AnimationTarget.TRANSLATION, slide),
    ])
    return AnimatedModel(graph, [clip], [Skin("Body", joints=[0, 1])], name="Rig")


def test_rigid_node_reads_animated_transform():
    """Non-skinned nodes use their animated global transform"""
    model = _model()
    model.play_animation("Move")
    model.update(0.5)

    assert np.allclose(model.get_model_matrix(3)[3, :3], (1, 0, 0))
    assert np.allclose(model.get_node_matrix(3)[3, :3], (1, 0, 0))


def test_skinned_node_uses_joint_matrices():
    """Skinned meshes get identity model matrices and animated joints"""
    model = _model()
    model.play_animation("Move")
    model.update(0.5)

    assert np.allclose(model.get_model_matrix(2), np.identity(4))
    joints = model.get_joint_matrices(0)
    assert joints.count == 2
    assert np.allclose(joints[1][3, :3], (1, 0, 0))


def test_write_uniforms():
    """Model and joint matrices are written as float32 bytes"""
    model = _model()
    model.play_animation("Move")
    model.update(0.5)

    program = FakeProgram(model=FakeUniform(), jointMatrices=FakeUniform())
    model.write_uniforms(program, 2)
    assert program["model"].data == np.identity(4, dtype='f4').tobytes()
    assert program["jointMatrices"].data == model.get_joint_matrices(0).tobytes()

    rigid = FakeProgram(model=FakeUniform())
    model.write_uniforms(rigid, 3)
    written = np.frombuffer(rigid["model"].data, dtype='f4').reshape(4, 4)
    assert np.allclose(written[3, :3], (1, 0, 0))


def test_play_once_and_stop():
    """Non-looping playback finishes; stop returns to the authored pose"""
    model = _model()
    model.play_animation("Move", loop=False)

    assert not model.update(2.0)
    assert not model.is_playing
    assert np.allclose(model.get_node_matrix(3)[3, :3], (0, 0, 0))

    model.play_animation("Move")
    model.update(0.5)
    model.stop_animation()
    assert np.allclose(model.get_node_matrix(3)[3, :3], (0, 0, 0))


def test_unknown_animation_is_ignored(caplog):
    """Playing a missing animation logs a warning and changes nothing"""
    model = _model()
    with caplog.at_level(logging.WARNING):
        assert model.play_animation("Dance") is None
    assert model.animation_controller.active == []
    assert any("Dance" in record.getMessage() for record in caplog.records)
