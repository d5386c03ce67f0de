"""
Chromosome helpers for the genetic nester.

A chromosome is a tuple of ``(instance_index, angle)`` genes: the order in
which part instances are handed to the placer, each with its preferred
rotation. Tuples keep chromosomes hashable so fitness can be cached.
"""


def rotation_choices(rotation_step):
    """All angles that are multiples of ``rotation_step`` in [0, 360)."""
    if not rotation_step or rotation_step <= 0 or rotation_step >= 360:
        return [0.0]
    count = int(round(360.0 / rotation_step))
    return [float(i * rotation_step) for i in range(count) if i * rotation_step < 360.0]


def create_greedy_chromosome(parts):
    """Largest area first, every part unrotated."""
    order = sorted(range(len(parts)), key=lambda i: parts[i].area, reverse=True)
    return tuple((i, 0.0) for i in order)


def create_random_chromosome(part_count, angles, rng):
    """
    Creates a random chromosome: shuffled order and a random preferred
    rotation for each part.
    """
    order = list(range(part_count))
    rng.shuffle(order)
    return tuple((i, rng.choice(angles)) for i in order)


def select_parent(ranked_population, rng):
    """
    Picks a parent uniformly from the top half of the ranked population.
    ranked_population: list of (fitness, chromosome) tuples, best first.
    """
    top_half = ranked_population[:max(1, len(ranked_population) // 2)]
    return rng.choice(top_half)[1]


def mutate_chromosome(chromosome, mutation_rate, angles, rng):
    """
    Returns a mutated copy: with probability ``mutation_rate`` two genes swap
    places, and independently one gene's rotation is resampled.
    """
    genes = list(chromosome)

    # Swap mutation
    if rng.random() < mutation_rate and len(genes) > 1:
        i, j = rng.sample(range(len(genes)), 2)
        genes[i], genes[j] = genes[j], genes[i]

    # Rotation mutation
    if len(angles) > 1 and genes and rng.random() < mutation_rate:
        k = rng.randrange(len(genes))
        genes[k] = (genes[k][0], rng.choice(angles))

    return tuple(genes)
