import logging
import os
import random
import time

import pygame

import tiles
import wfc

# This file starts the algorithm and displays the progress.
# wfc.py contains the actual algorithm,
# tiles.py describes the tiles and how their edges fit together,
# and tiles.json contains the tiles to be used.
#
# Each tile is drawn from its picture if tiles.json gives one ("fname"),
# and otherwise from its edges: every edge character that differs from the
# background gets a line from that part of the edge to the middle of the tile.
# So an "ABA" edge is a pipe coming in through the middle of that side.

logger = logging.getLogger(__name__)

# How many pixels wide each tile is. The grid gets as many tiles as fit the window.
CELL_SIZE = 20
# The window size, in pixels.
SCREEN_SIZE = (800, 800)
# How many cells to collapse per frame
STEPS_PER_FRAME = 4
# Frames per second
FPS = 60
# Save the result as a png?
DO_SCREENSHOTS = True
# Start over with a new seed after a contradiction?
RESTART_ON_CONTRADICTION = True
TILE_FILE = "tiles.json"
SEED = None

PALETTE = [(235, 235, 235), (40, 40, 40), (52, 101, 164), (204, 0, 0), (78, 154, 6), (196, 160, 0)]


# Save the result as a png
def save_image(screen):
    # Give the file a name according to the current time
    os.makedirs("out", exist_ok=True)
    t = time.strftime("%Y-%m-%d_%H-%M-%S")
    pygame.image.save(screen, f"out/WFC_{t}.png")


# This class handles the display of tiles
class TileSprite(pygame.sprite.Sprite):
    def __init__(self, variant, tile_size, colors) -> None:
        super().__init__()
        if variant.fname:
            self.surf = pygame.image.load(variant.fname).convert_alpha()
            self.surf = pygame.transform.scale(self.surf, tile_size)
            # Apply the flip before the rotation, same order as the edges were generated
            self.surf = pygame.transform.flip(self.surf, variant.flip == "horz", variant.flip == "vert")
            self.surf = pygame.transform.rotate(self.surf, -90 * variant.rotation)
        else:
            self.surf = draw_edges(variant, tile_size, colors)
        self.rect = self.surf.get_rect()


# Points along each side, in the same clockwise order the edge characters are read in
def edge_points(side, count, size):
    w, h = size
    for k in range(count):
        t = (k + 0.5) / count
        if side == wfc.Direction.TOP:
            yield (t * w, 0)
        elif side == wfc.Direction.RIGHT:
            yield (w - 1, t * h)
        elif side == wfc.Direction.BOTTOM:
            yield ((1 - t) * w, h - 1)
        else:
            yield (0, (1 - t) * h)


def draw_edges(variant, tile_size, colors):
    surf = pygame.Surface(tile_size)
    background = variant.edges[0][0] if variant.edges[0] else None
    surf.fill(colors.get(background, PALETTE[0]))
    center = (tile_size[0] / 2, tile_size[1] / 2)
    width = max(1, min(tile_size) // 5)
    for side in wfc.Direction:
        edge = variant.edge(side)
        for char, point in zip(edge, edge_points(side, len(edge), tile_size)):
            if char != background:
                pygame.draw.line(surf, colors[char], point, center, width)
    return surf


def build_sprites(catalog, tile_size):
    chars = sorted({char for variant in catalog for edge in variant.edges for char in edge})
    colors = {char: PALETTE[i % len(PALETTE)] for i, char in enumerate(chars)}
    return {variant.index: TileSprite(variant, tile_size, colors) for variant in catalog}


# Display the actual tiles to the screen
def display_grid(screen, drawn, sprites, tile_size):
    for event in drawn:
        screen.blit(sprites[event.tile_id].surf, (event.col * tile_size[0], event.row * tile_size[1]))
    pygame.display.flip()


def new_engine(catalog, seeds):
    config = wfc.GenerationConfig.for_canvas(*SCREEN_SIZE, CELL_SIZE, seed=seeds.getrandbits(32))
    return wfc.CollapseEngine.from_config(catalog, config)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    catalog = tiles.load_catalog(TILE_FILE)

    # The pygame module is used for the display.
    pygame.init()
    screen = pygame.display.set_mode(SCREEN_SIZE)

    # Every tile is a CELL_SIZE square; the grid is the window rounded to whole tiles
    tile_size = (CELL_SIZE, CELL_SIZE)
    sprites = build_sprites(catalog, tile_size)

    seeds = random.Random(SEED)
    engine = new_engine(catalog, seeds)
    events = engine.events()
    drawn = []
    attempts = 1
    taken_screenshot = False
    clock = pygame.time.Clock()

    # Main loop
    running = True
    while running:

        # Handle quit request
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False

        # Advance the algorithm a few cells
        if not engine.state.is_terminal:
            for _ in range(STEPS_PER_FRAME):
                event = next(events, None)
                if event is None:
                    break
                drawn.append(event)

        result = engine.result
        # Display the screen, based on the state of the algorithm.
        if result is not None and result.success:
            screen.fill((194, 255, 161))
            display_grid(screen, drawn, sprites, tile_size)
            # Take screenshot if algorithm just finished
            if not taken_screenshot and DO_SCREENSHOTS:
                save_image(screen)
                taken_screenshot = True
                logger.info("Finished after %d attempt(s)", attempts)
        elif result is not None:
            screen.fill((140, 31, 47))
            display_grid(screen, drawn, sprites, tile_size)
            if RESTART_ON_CONTRADICTION:
                attempts += 1
                logger.info("Restarting, attempt #%d", attempts)
                engine = new_engine(catalog, seeds)
                events = engine.events()
                drawn = []
        else:
            screen.fill((255, 255, 255))
            display_grid(screen, drawn, sprites, tile_size)

        clock.tick(FPS)

    pygame.quit()


if __name__ == "__main__":
    main()
