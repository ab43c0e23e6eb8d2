from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from caffeinated.models import GamePhase, GameStateData


class GameFSM(StateMachine):
    """FSM wrapper around GameStateData.

    - phases: menu -> playing <-> paused; playing -> victory | gameOver; back to menu from anywhere but menu.
    - stats are mutated by GameStateManager; the FSM only guards transitions.
    """

    menu = State(GamePhase.menu.value, value=GamePhase.menu.value, initial=True)
    playing = State(GamePhase.playing.value, value=GamePhase.playing.value)
    paused = State(GamePhase.paused.value, value=GamePhase.paused.value)
    game_over = State(GamePhase.game_over.value, value=GamePhase.game_over.value)
    victory = State(GamePhase.victory.value, value=GamePhase.victory.value)

    start_game = menu.to(playing) | game_over.to(playing) | victory.to(playing)
    pause_game = playing.to(paused)
    resume_game = paused.to(playing)
    win = playing.to(victory)
    lose = playing.to(game_over)
    return_to_menu = playing.to(menu) | paused.to(menu) | game_over.to(menu) | victory.to(menu)

    def __init__(self, data: GameStateData):
        self.data = data
        super().__init__(start_value=data.state.value)

    @property
    def phase(self) -> GamePhase:
        return GamePhase(str(self.current_state.value))

    def fire(self, event: str) -> bool:
        """Send `event` if the current phase allows it; otherwise do nothing."""

        try:
            self.send(event)
        except TransitionNotAllowed:
            return False
        self.sync_phase_to_model()
        return True

    def sync_phase_to_model(self) -> None:
        self.data.state = self.phase
