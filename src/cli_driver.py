# cli_driver.py
# This file is intended to be run to play the 2048 game on the CLI

from typing import Callable, Iterable

from core import Grid
from game_manager import GameManager, Renderer, RenderMetadata
from input_manager import InputManager
from settings import load_settings, setup_logging
from storage import select_storage

PROMPT = "Move (W/A/S/D, H/J/K/L; R restart, C keep playing, Q quit): "


class ConsoleRenderer(Renderer):
    """Prints the board, score and game status to the console."""

    def __init__(self, write: Callable[[str], None] = print):
        self.write = write
        self.score = 0

    def render(self, grid: Grid, metadata: RenderMetadata) -> None:
        difference = metadata.score - self.score
        self.score = metadata.score

        score_line = f"\nScore: {metadata.score}"
        if difference > 0:
            score_line += f" (+{difference})"
        self.write(f"{score_line}\tBest: {metadata.best_score}")

        for row in grid.to_matrix():
            self.write("\t".join(str(value) if value else "." for value in row))
        self.write("-" * (grid.size * 6))  # Adjust width based on board size

        if metadata.terminated:
            if metadata.over:
                self.write("GAME OVER! Press R to try again.")
            elif metadata.won:
                self.write("YOU WON! Press C to keep playing or R to restart.")

    def continue_game(self) -> None:
        # Messages are printed once per frame, so there is nothing to clear.
        pass


def run(input_manager: InputManager, lines: Iterable[str], write: Callable[[str], None] = print) -> None:
    """Feeds each input line to the input manager until a quit command."""
    for line in lines:
        key = line.strip().lower()
        if key == "q":
            write("Quitting game.")
            break
        if not input_manager.handle_key(key):
            write("Invalid input. Use W, A, S, D.")


def _read_lines(prompt: str) -> Iterable[str]:
    while True:
        try:
            yield input(prompt)
        except EOFError:
            return


def main():
    settings = load_settings()
    setup_logging(settings.log_level)

    input_manager = InputManager()
    game = GameManager(
        renderer=ConsoleRenderer(),
        storage=select_storage(settings.storage_path),
        size=settings.size,
        win_tile=settings.win_tile,
        start_tiles=settings.start_tiles,
    )
    game.bind(input_manager)

    run(input_manager, _read_lines(PROMPT))

    print("\n--- Final Score ---")
    print(f"Score: {game.score}\tBest: {game.best_score()}")


if __name__ == "__main__":
    main()
