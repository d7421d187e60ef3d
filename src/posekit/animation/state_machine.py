"""
Animation State Machine

Named animation states with crossfades and one-shot auto-return, driven
through AnimationController.play_weighted().
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..config.settings import DEBUG_ANIMATION
from .animation_controller import AnimationController
from .playback import RepeatMode, WeightedAnimation

logger = logging.getLogger(__name__)


@dataclass
class StateConfig:
    """
    Data descriptor for one animation state.

    A ONCE state with a return_state goes back to it when its clip ends.
    """

    clip: Union[str, int]                  # Clip name or index
    repeat: RepeatMode = RepeatMode.FOREVER
    crossfade_in: float = 0.0              # Blend-in time when entering (seconds)
    interruptible: bool = True             # Whether request_state() may leave it
    return_state: Optional[str] = None     # State entered when a ONCE clip ends
    start_time: float = 0.0                # Section of the clip to play (seconds)
    end_time: Optional[float] = None       # None plays to the clip end

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateConfig":
        """
        Create a state config from JSON data.

        Example JSON:
            {
                "clip": "Punch",
                "repeat": "once",
                "crossfade_in": 0.1,
                "interruptible": false,
                "return_state": "idle",
                "start_time": 2.25,
                "end_time": 3.0
            }
        """
        if "clip" not in data:
            raise ValueError("Animation state is missing required 'clip' field")

        repeat_str = str(data.get("repeat", "forever")).lower()
        try:
            repeat = RepeatMode(repeat_str)
        except ValueError:
            raise ValueError(f"Invalid repeat mode: {repeat_str}")
        if repeat == RepeatMode.COUNT:
            raise ValueError("Animation states support 'once' or 'forever' repeat only")

        return cls(
            clip=data["clip"],
            repeat=repeat,
            crossfade_in=float(data.get("crossfade_in", 0.0)),
            interruptible=bool(data.get("interruptible", True)),
            return_state=data.get("return_state"),
            start_time=float(data.get("start_time", 0.0)),
            end_time=float(data["end_time"]) if data.get("end_time") is not None else None,
        )


@dataclass
class StateMachineDefinition:
    """
    Container for a set of states loaded from a JSON file.
    """

    initial_state: str
    states: Dict[str, StateConfig] = field(default_factory=dict)
    name: str = "AnimationStateMachine"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateMachineDefinition":
        """
        Load a state machine from JSON data.

        Example JSON:
            {
                "name": "Soldier",
                "initial_state": "idle",
                "states": {
                    "idle": {"clip": "Idle", "repeat": "forever"},
                    "punch": {"clip": "Punch", "repeat": "once", "return_state": "idle"}
                }
            }
        """
        states = {name: StateConfig.from_dict(state) for name, state in data.get("states", {}).items()}
        if not states:
            raise ValueError("State machine definition has no states")

        initial_state = data.get("initial_state", next(iter(states)))
        definition = cls(
            initial_state=initial_state,
            states=states,
            name=data.get("name", "AnimationStateMachine"),
        )
        definition.validate()
        return definition

    def validate(self):
        """Check that every referenced state exists."""
        if self.initial_state not in self.states:
            raise ValueError(f"Unknown initial state: {self.initial_state}")
        for name, config in self.states.items():
            if config.return_state is not None and config.return_state not in self.states:
                raise ValueError(f"State '{name}' returns to unknown state '{config.return_state}'")


class AnimationStateMachine:
    """
    Finite state machine for animation control.

    Usage:
        machine = AnimationStateMachine(controller, definition.states, "idle")
        machine.request_state("walk")   # from input handling
        machine.update(delta_time)      # once per frame, instead of controller.update()
    """

    def __init__(self, controller: AnimationController, states: Dict[str, StateConfig], initial_state: str):
        """
        Initialize the state machine.

        Args:
            controller: Controller whose weighted set this machine owns
            states: State configs keyed by name
            initial_state: Name of the starting state

        Raises:
            KeyError: if a state refers to an unknown clip
            ValueError: if initial or return states are unknown, or a clip
                section is invalid
        """
        StateMachineDefinition(initial_state, dict(states)).validate()

        self.controller = controller
        self.states = dict(states)
        self.durations = {name: self._state_duration(config) for name, config in self.states.items()}

        self.current_state = initial_state
        self.previous_state: Optional[str] = None
        self.crossfade_elapsed = 0.0
        self.crossfade_duration = 0.0
        self.last_frame_time = controller.time
        self.current_state_start = self.last_frame_time
        self.previous_state_start = 0.0
        self.debug = DEBUG_ANIMATION

    def _state_duration(self, config: StateConfig) -> float:
        duration = self.controller.get_clip(config.clip).duration
        end_time = duration if config.end_time is None else config.end_time
        if config.start_time < 0.0 or end_time < config.start_time:
            raise ValueError(f"Invalid time range [{config.start_time}, {config.end_time}] for clip '{config.clip}'")
        return end_time - config.start_time

    @classmethod
    def from_definition(cls, controller: AnimationController,
                        definition: StateMachineDefinition) -> "AnimationStateMachine":
        return cls(controller, definition.states, definition.initial_state)

    @property
    def is_transitioning(self) -> bool:
        return self.previous_state is not None

    def request_state(self, new_state: str) -> bool:
        """
        Request a state change, respecting interruptibility.

        Returns:
            True if the transition was accepted or already in that state
        """
        if new_state not in self.states:
            raise KeyError(f"Unknown animation state: {new_state}")
        if new_state == self.current_state:
            return True

        if not self.states[self.current_state].interruptible:
            if self.debug:
                logger.debug("%s denied (%s not interruptible)", new_state, self.current_state)
            return False

        self._transition_to(new_state)
        return True

    def force_state(self, new_state: str):
        """Change state ignoring interruptibility (death, hit reactions)."""
        if new_state not in self.states:
            raise KeyError(f"Unknown animation state: {new_state}")
        if new_state != self.current_state:
            self._transition_to(new_state)

    def _transition_to(self, new_state: str):
        config = self.states[new_state]

        if self.debug:
            logger.debug("%s -> %s (crossfade %.2fs)", self.current_state, new_state, config.crossfade_in)

        if config.crossfade_in <= 0.0:
            # Instant transition
            self.previous_state = None
            self.crossfade_duration = 0.0
        else:
            self.previous_state = self.current_state
            self.previous_state_start = self.current_state_start
            self.crossfade_duration = config.crossfade_in

        self.current_state = new_state
        self.current_state_start = self.last_frame_time
        self.crossfade_elapsed = 0.0

    def update(self, delta_time: float) -> bool:
        """
        Advance one frame: auto-return, crossfade, then controller update.

        Returns:
            Result of AnimationController.update()
        """
        self.last_frame_time = self.controller.time + delta_time

        config = self.states[self.current_state]
        if config.repeat == RepeatMode.ONCE and config.return_state is not None:
            elapsed = self.last_frame_time - self.current_state_start
            if elapsed >= self.durations[self.current_state]:
                if self.debug:
                    logger.debug("%s complete -> %s", self.current_state, config.return_state)
                self._transition_to(config.return_state)

        if self.previous_state is not None:
            self.crossfade_elapsed += delta_time
            if self.crossfade_elapsed >= self.crossfade_duration:
                self.previous_state = None

        self.controller.play_weighted(self.build_weighted_animations())
        return self.controller.update(delta_time)

    def build_weighted_animations(self) -> List[WeightedAnimation]:
        """Weighted entries for the current frame (two while crossfading)."""
        if self.previous_state is None:
            return [self._weighted(self.current_state, self.current_state_start, 1.0)]

        blend = min(self.crossfade_elapsed / self.crossfade_duration, 1.0)
        return [
            self._weighted(self.previous_state, self.previous_state_start, 1.0 - blend),
            self._weighted(self.current_state, self.current_state_start, blend),
        ]

    def _weighted(self, state: str, state_start: float, weight: float) -> WeightedAnimation:
        config = self.states[state]
        optional_start = state_start if config.repeat == RepeatMode.ONCE else 0.0
        return WeightedAnimation(
            config.clip,
            weight=weight,
            optional_start=optional_start,
            start_time=config.start_time,
            end_time=config.end_time,
        )

    def __repr__(self):
        return f"AnimationStateMachine(state='{self.current_state}', transitioning={self.is_transitioning})"
