import logging
import random
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, Optional, Union

from tiles import TileCatalog, TileVariant, compatible

logger = logging.getLogger(__name__)

# This is a greedy "Wave Function Collapse" over a grid of edge-matched tiles.
# Every cell starts out able to be any tile in the catalog.
# One random cell is collapsed first (the "seed"), and its edges are pushed onto
# its 4 neighbors, which drop every tile that wouldn't fit next to it.
# From then on, each step picks the cell with the fewest possible tiles left
# (the lowest "entropy") among the cells next to something already collapsed,
# collapses it to one of its tiles at random, and pushes its edges to its neighbors.
#
# Information only travels one cell per collapse, and nothing is ever undone.
# So with some tile sets the algorithm can reach a cell with no possible tiles
# (a "contradiction"). That ends the run; generate() restarts it with a new seed.


# Each direction is represented by an index.
# It starts at the top, and goes clockwise, same as the tile edges.
class Direction(IntEnum):
    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3

    @property
    def opposite(self) -> "Direction":
        return opposite_dir[self]

    @property
    def offset(self) -> tuple:
        return direction_offsets[self]


# Alleviates the need for weird math stuff
opposite_dir = {
    Direction.TOP: Direction.BOTTOM,
    Direction.RIGHT: Direction.LEFT,
    Direction.BOTTOM: Direction.TOP,
    Direction.LEFT: Direction.RIGHT,
}

# (row, col) offsets of the neighbor in each direction
direction_offsets = {
    Direction.TOP: (-1, 0),
    Direction.RIGHT: (0, 1),
    Direction.BOTTOM: (1, 0),
    Direction.LEFT: (0, -1),
}


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    PROPAGATING = "propagating"
    SELECTING = "selecting"
    COLLAPSED = "collapsed"
    # Terminal states
    EXHAUSTED = "exhausted"
    CONTRADICTION = "contradiction"

    @property
    def is_terminal(self) -> bool:
        return self in (EngineState.EXHAUSTED, EngineState.CONTRADICTION)


class OutOfBoundsSeed(ValueError):
    """An explicit seed position lies outside the grid."""


class ContradictionError(RuntimeError):
    """A cell was asked to collapse with no possible tiles left."""

    def __init__(self, row: int, col: int):
        super().__init__(f"Cell ({row}, {col}) has no possible tiles")
        self.row = row
        self.col = col


### CELLS ###

class Cell:
    """One grid position, and the tiles it can still become."""

    def __init__(self, row: int, col: int, catalog: TileCatalog):
        self.row = row
        self.col = col
        self.catalog = catalog
        self.candidates = set(catalog.handles())
        self.collapsed = False
        self.resolved: Optional[int] = None

    @property
    def pos(self) -> tuple:
        return (self.row, self.col)

    @property
    def entropy(self) -> int:
        return len(self.candidates)

    @property
    def tile(self) -> Optional[TileVariant]:
        return None if self.resolved is None else self.catalog[self.resolved]

    def restrict_candidates(self, incoming_edge: str, side: Direction) -> int:
        """Drop every tile whose edge on `side` doesn't fit `incoming_edge`.

        `side` is the side of this cell that touches the neighbor the edge comes from.
        Returns the new entropy.
        """
        self.candidates = {
            handle for handle in self.candidates
            if compatible(incoming_edge, self.catalog[handle].edge(side))
        }
        return self.entropy

    def collapse(self, rng: random.Random) -> int:
        if self.collapsed:
            return self.resolved
        if not self.candidates:
            raise ContradictionError(self.row, self.col)

        # Sorted so the same rng seed always picks the same tile
        self.resolved = rng.choice(sorted(self.candidates))
        self.candidates = {self.resolved}
        self.collapsed = True
        return self.resolved

    def __repr__(self) -> str:
        state = f"resolved={self.resolved}" if self.collapsed else f"entropy={self.entropy}"
        return f"Cell({self.row}, {self.col}, {state})"


class Grid:
    """A fixed rows x cols array of cells. Edges don't wrap around."""

    def __init__(self, rows: int, cols: int, catalog: TileCatalog, cell_size: int = 24):
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {rows}x{cols}")
        self.rows = rows
        self.cols = cols
        self.cell_size = cell_size
        self.catalog = catalog
        self.cells = [[Cell(i, j, catalog) for j in range(cols)] for i in range(rows)]

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def cell_at(self, row: int, col: int) -> Cell:
        return self.cells[row][col]

    # Get the cells neighboring a specified cell, with the direction they are in.
    # Neighbors past the edge of the grid are left out.
    def neighbors(self, cell: Cell) -> Iterator:
        for direction in Direction:
            d_row, d_col = direction.offset
            row, col = cell.row + d_row, cell.col + d_col
            if self.in_bounds(row, col):
                yield direction, self.cells[row][col]

    def __iter__(self) -> Iterator[Cell]:
        for row in self.cells:
            yield from row

    @property
    def pixel_size(self) -> tuple:
        return (self.cols * self.cell_size, self.rows * self.cell_size)

    def collapsed_count(self) -> int:
        return sum(1 for cell in self if cell.collapsed)

    def is_fully_collapsed(self) -> bool:
        return all(cell.collapsed for cell in self)

    def resolved(self) -> list:
        """The resolved tile handle of every cell, None where uncollapsed."""
        return [[cell.resolved for cell in row] for row in self.cells]


class Frontier:
    """Uncollapsed cells next to at least one collapsed cell."""

    def __init__(self):
        self._cells = {}

    def add(self, cell: Cell) -> None:
        if not cell.collapsed:
            self._cells[cell.pos] = cell

    def prune(self) -> None:
        for pos in [pos for pos, cell in self._cells.items() if cell.collapsed]:
            del self._cells[pos]

    def min_entropy_cells(self) -> list:
        if not self._cells:
            return []
        min_entropy = min(cell.entropy for cell in self._cells.values())
        # Ordered by position, so picking among them depends only on the rng
        return sorted(
            (cell for cell in self._cells.values() if cell.entropy == min_entropy),
            key=lambda cell: cell.pos,
        )

    def __contains__(self, cell: Cell) -> bool:
        return cell.pos in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __bool__(self) -> bool:
        return bool(self._cells)

##############


@dataclass(frozen=True)
class CollapseEvent:
    """Emitted once for every cell that gets collapsed."""

    row: int
    col: int
    tile_id: int
    variant: TileVariant


@dataclass(frozen=True)
class RunResult:
    """How a run ended: EXHAUSTED (success) or CONTRADICTION (failure)."""

    state: EngineState
    collapsed: int
    contradiction_at: Optional[tuple] = None

    @property
    def success(self) -> bool:
        return self.state == EngineState.EXHAUSTED


StepResult = Union[CollapseEvent, RunResult]


@dataclass(frozen=True)
class GenerationConfig:
    """Parameters for one generation."""

    rows: int
    cols: int
    cell_size: int = 24
    seed: Optional[int] = None
    seed_position: Optional[tuple] = None
    # Only used by generate()
    max_attempts: int = 100

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def for_canvas(cls, width: int, height: int, cell_size: int = 24, **kwargs) -> "GenerationConfig":
        # Round the canvas to the nearest whole number of cells
        rows = max(1, round(height / cell_size))
        cols = max(1, round(width / cell_size))
        return cls(rows=rows, cols=cols, cell_size=cell_size, **kwargs)


###### THE ALGORITHM ######

class CollapseEngine:
    """Runs one generation over one grid, a cell at a time.

    Call step() to collapse the next cell. It returns a CollapseEvent, or a
    RunResult once the run is over. events() wraps that up as a generator.
    """

    def __init__(
        self,
        catalog: TileCatalog,
        rows: int,
        cols: int,
        seed: Optional[int] = None,
        seed_position: Optional[tuple] = None,
        cell_size: int = 24,
        rng: Optional[random.Random] = None,
    ):
        self.catalog = catalog
        self.grid = Grid(rows, cols, catalog, cell_size)
        self.rng = rng if rng is not None else random.Random(seed)

        if seed_position is not None:
            row, col = seed_position
            if not self.grid.in_bounds(row, col):
                raise OutOfBoundsSeed(f"Seed position {seed_position} is outside the {rows}x{cols} grid")
        self.seed_position = seed_position

        self.frontier = Frontier()
        self.state = EngineState.UNINITIALIZED
        self.collapse_count = 0
        self._result: Optional[RunResult] = None

    @classmethod
    def from_config(cls, catalog: TileCatalog, config: GenerationConfig, rng: Optional[random.Random] = None):
        return cls(
            catalog,
            config.rows,
            config.cols,
            seed=config.seed,
            seed_position=config.seed_position,
            cell_size=config.cell_size,
            rng=rng,
        )

    @property
    def result(self) -> Optional[RunResult]:
        return self._result

    def step(self) -> StepResult:
        if self.state.is_terminal:
            return self._result
        if self.state == EngineState.UNINITIALIZED:
            return self._seed()

        self.state = EngineState.SELECTING
        self.frontier.prune()
        cell = self._select_next()
        if cell is None:
            return self._finish(EngineState.EXHAUSTED)

        # Nothing fits here. There is no backtracking, so the run is over.
        if not cell.candidates:
            logger.warning("Contradiction at (%d, %d) after %d collapses", cell.row, cell.col, self.collapse_count)
            return self._finish(EngineState.CONTRADICTION, cell.pos)

        return self._collapse(cell, EngineState.COLLAPSED)

    def events(self) -> Iterator[CollapseEvent]:
        while True:
            result = self.step()
            if isinstance(result, RunResult):
                return
            yield result

    def run(self) -> RunResult:
        for _ in self.events():
            pass
        return self._result

    def _seed(self) -> CollapseEvent:
        if self.seed_position is not None:
            row, col = self.seed_position
        else:
            row = self.rng.randrange(self.grid.rows)
            col = self.rng.randrange(self.grid.cols)
        logger.info("Seeding %dx%d grid at (%d, %d)", self.grid.rows, self.grid.cols, row, col)
        return self._collapse(self.grid.cell_at(row, col), EngineState.SEEDED)

    # Tiles with the lowest possible states, picking randomly between ties
    def _select_next(self) -> Optional[Cell]:
        lowest = self.frontier.min_entropy_cells()
        if not lowest:
            return None
        return self.rng.choice(lowest)

    def _collapse(self, cell: Cell, state: EngineState) -> CollapseEvent:
        handle = cell.collapse(self.rng)
        self.collapse_count += 1
        self.state = state
        self._propagate(cell)
        logger.debug("Collapsed (%d, %d) to tile %d", cell.row, cell.col, handle)
        return CollapseEvent(cell.row, cell.col, handle, self.catalog[handle])

    # Push the collapsed cell's edges onto its neighbors.
    # Only one hop: the neighbors' own neighbors aren't updated.
    def _propagate(self, cell: Cell) -> None:
        previous = self.state
        self.state = EngineState.PROPAGATING
        tile = cell.tile
        for direction, neighbor in self.grid.neighbors(cell):
            if neighbor.collapsed:
                continue
            neighbor.restrict_candidates(tile.edge(direction), direction.opposite)
            self.frontier.add(neighbor)
        self.state = previous

    def _finish(self, state: EngineState, contradiction_at: Optional[tuple] = None) -> RunResult:
        self.state = state
        self._result = RunResult(state, self.collapse_count, contradiction_at)
        if state == EngineState.EXHAUSTED:
            logger.info("Finished after %d collapses", self.collapse_count)
        return self._result


############################


@dataclass
class GenerationReport:
    engine: CollapseEngine
    result: RunResult
    attempts: int


# Run the algorithm, restarting with a new seed every time it hits a contradiction.
def generate(catalog: TileCatalog, config: GenerationConfig) -> GenerationReport:
    seeds = random.Random(config.seed)
    engine = None
    result = None

    for attempt in range(1, config.max_attempts + 1):
        logger.info("Starting attempt #%d", attempt)
        engine = CollapseEngine(
            catalog,
            config.rows,
            config.cols,
            seed=seeds.getrandbits(32),
            seed_position=config.seed_position,
            cell_size=config.cell_size,
        )
        result = engine.run()
        if result.success:
            logger.info("Attempt #%d finished successfully", attempt)
            return GenerationReport(engine, result, attempt)
        logger.info("Attempt #%d finished with contradiction at %s", attempt, result.contradiction_at)

    logger.warning("Giving up after %d attempts", config.max_attempts)
    return GenerationReport(engine, result, config.max_attempts)


# Runs the algorithm a number of times and returns the average number of attempts.
def average_attempts(catalog: TileCatalog, config: GenerationConfig, trials: int) -> float:
    if trials <= 0:
        raise ValueError("trials must be positive")
    seeds = random.Random(config.seed)
    attempts_sum = 0
    for trial in range(trials):
        trial_config = GenerationConfig(
            rows=config.rows,
            cols=config.cols,
            cell_size=config.cell_size,
            seed=seeds.getrandbits(32),
            seed_position=config.seed_position,
            max_attempts=config.max_attempts,
        )
        report = generate(catalog, trial_config)
        logger.debug("Trial #%d took %d attempts", trial + 1, report.attempts)
        attempts_sum += report.attempts
    return attempts_sum / trials
