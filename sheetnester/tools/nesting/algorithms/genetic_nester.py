import random
from collections import namedtuple

from .base_nester import BaseNester
from . import collision, genetic_utils

GenerationReport = namedtuple("GenerationReport", ["generation", "fitness", "result"])


# --- Genetic Packer ---
class GeneticNester(BaseNester):
    """
    A nester that uses a genetic algorithm to find a good layout.
    It evolves a population of solutions (part order and preferred rotation)
    over a fixed number of generations. Each solution is laid out by a
    deterministic grid-scan placer working on the true part outlines.
    """
    def __init__(self, width, height, rotation_steps=1, **kwargs):
        super().__init__(width, height, rotation_steps, **kwargs)
        # --- Algorithm-specific parameters ---
        self.population_size = max(1, kwargs.get("population_size", 10))
        self.generations = kwargs.get("generations", 20)
        self.mutation_rate = kwargs.get("mutation_rate", 0.3)
        self.elite_size = kwargs.get("elite_size", 2)
        self.rotation_step = kwargs.get("rotation_step", 15)
        self.grid_step = kwargs.get("grid_step", 3.0)
        self.random = random.Random(kwargs.get("seed"))

        self.angles = genetic_utils.rotation_choices(self.rotation_step)
        self._fitness_cache = {}
        self.best_solution = None

    def rotation_angles(self):
        return list(self.angles)

    def nest(self, parts):
        """
        Runs the full evolution and returns the best layout found.
        """
        self.parts_to_place = list(parts)
        self._fitness_cache = {}
        self.best_solution = None
        if not self.parts_to_place:
            return self._build_result([], [])

        for report in self.evolve():
            if self.update_callback:
                self.update_callback({
                    "type": "PROGRESS",
                    "generation": report.generation + 1,
                    "generations": self.generations,
                    "fitness": report.fitness,
                    "result": report.result.to_dict(),
                })

        _, sheets, unplaced = self._evaluate(self.best_solution[1])
        self.sheets = sheets
        return self._build_result(sheets, unplaced)

    def evolve(self):
        """
        Main genetic algorithm loop. Yields a GenerationReport with the best
        layout so far after every generation. Stops early, keeping the best
        solution, when the cancel event is set.
        """
        population = self._create_initial_population()

        for gen in range(self.generations):
            if self.is_cancelled():
                self.log(f"Genetic run cancelled before generation {gen + 1}.", level="warning")
                break

            # --- 1. Evaluate Fitness ---
            ranked_population = [(self._evaluate(c)[0], c) for c in population]

            # Sort by fitness (higher is better)
            ranked_population.sort(key=lambda x: x[0], reverse=True)

            # Update the best solution found so far
            if self.best_solution is None or ranked_population[0][0] > self.best_solution[0]:
                self.best_solution = ranked_population[0]

            self.log(f"Generation {gen + 1}/{self.generations}, Best Fitness: {self.best_solution[0]:.4f}")
            _, sheets, unplaced = self._evaluate(self.best_solution[1])
            yield GenerationReport(gen, self.best_solution[0], self._build_result(sheets, unplaced))

            # --- 2. Create Next Generation ---
            # Elitism: Carry over the best individuals to the next generation
            next_population = [sol[1] for sol in ranked_population[:self.elite_size]]

            while len(next_population) < self.population_size:
                parent = genetic_utils.select_parent(ranked_population, self.random)
                next_population.append(
                    genetic_utils.mutate_chromosome(parent, self.mutation_rate, self.angles, self.random))

            population = next_population

        if self.best_solution is None:
            # Cancelled before the first generation was scored.
            greedy = genetic_utils.create_greedy_chromosome(self.parts_to_place)
            self.best_solution = (self._evaluate(greedy)[0], greedy)

    def _create_initial_population(self):
        """One greedy largest-first chromosome plus random ones."""
        population = [genetic_utils.create_greedy_chromosome(self.parts_to_place)]
        while len(population) < self.population_size:
            population.append(genetic_utils.create_random_chromosome(
                len(self.parts_to_place), self.angles, self.random))
        return population

    def _evaluate(self, chromosome):
        """Returns (fitness, sheets, unplaced) for a chromosome, cached."""
        cached = self._fitness_cache.get(chromosome)
        if cached is not None:
            return cached

        sequence = [(self.parts_to_place[i], angle) for i, angle in chromosome]
        sheets, unplaced = self._place_sequence(sequence)
        result = (self._calculate_fitness(sheets, unplaced), sheets, unplaced)
        self._fitness_cache[chromosome] = result
        return result

    def _calculate_fitness(self, sheets, unplaced):
        """
        Placed net area over the consumed extent, scaled down by the
        fraction of parts left unplaced. Higher is better.
        """
        if not sheets:
            return 0.0

        placed_area = sum(sheet.used_area() for sheet in sheets)
        last_sheet = sheets[-1]
        max_x = max(p.shape.bounds[2] for p in last_sheet.parts)
        max_y = max(p.shape.bounds[3] for p in last_sheet.parts)
        extent = (len(sheets) - 1) * self._bin_width * self._bin_height + max_x * max_y
        if extent <= 0:
            return 0.0

        unplaced_fraction = len(unplaced) / float(len(self.parts_to_place))
        return (placed_area / extent) * (1.0 - unplaced_fraction)

    def _grid_positions(self, low, high):
        positions = []
        value = low
        while value <= high + 1e-9:
            positions.append(value)
            value += self.grid_step
        if positions and positions[-1] < high - 1e-9:
            positions.append(high)
        return positions

    def _perpendicular_angle(self, angle):
        """The allowed rotation closest to ``angle`` plus 90 degrees."""
        target = (angle + 90.0) % 360.0

        def distance(candidate):
            diff = abs(candidate - target) % 360.0
            return min(diff, 360.0 - diff), candidate
        return min(self.angles, key=distance)

    def _try_place_part_on_sheet(self, part_to_place, sheet, preferred_angle=None):
        """
        Tries the preferred rotation and its perpendicular alternative, snapped
        to the allowed rotations. For each, scans a grid row by row from the
        sheet corner and returns the first valid position.
        """
        preferred = preferred_angle or 0.0
        angles = [preferred]
        alternative = self._perpendicular_angle(preferred)
        if alternative != preferred:
            angles.append(alternative)
        for angle in angles:
            rotated = part_to_place.rotated(angle)
            min_x, min_y, width, height = rotated.bounding_box()
            ys = self._grid_positions(sheet.margin, sheet.height - sheet.margin - height)
            xs = self._grid_positions(sheet.margin, sheet.width - sheet.margin - width)
            placed_bounds = [p.shape.bounds for p in sheet.parts]

            for y in ys:
                for x in xs:
                    candidate_bounds = (x, y, x + width, y + height)
                    if not sheet.crop_lines and not any(
                            collision.aabb_overlap(candidate_bounds, b) for b in placed_bounds):
                        return rotated.moved(x - min_x, y - min_y)
                    candidate = rotated.moved(x - min_x, y - min_y)
                    if sheet.is_placement_valid(candidate):
                        return candidate
        return None
