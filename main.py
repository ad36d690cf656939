"""Main experiment runner for timing randomized sketching across thread counts."""
import argparse
from typing import Dict, List, Tuple

import numpy as np

from randsketch import (
    DenseDist, DenseDistName, DenseSkOp, Layout, MajorAxis, Op, SparseDist, SparseSkOp,
    genmat, num_threads, sketch_general
)
from randsketch.utils import save_timing_plot, time_repeats


# Distribution mapping
FAMILY_MAP = {
    'gaussian': DenseDistName.Gaussian,
    'uniform': DenseDistName.Uniform,
}

# Default thread counts
DEFAULT_THREADS = [1, 2, 4, 8]


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Randomized Sketching Experiment Runner',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '--family', type=str, default='gaussian',
        choices=list(FAMILY_MAP.keys()),
        help='Entry distribution of the dense sketching operator'
    )

    parser.add_argument(
        '--sparse', action='store_true',
        help='Use a sparse (short-axis-major) sketching operator instead of a dense one'
    )

    parser.add_argument(
        '--vec_nnz', type=int, default=8,
        help='Nonzeros per short-axis vector of the sparse operator'
    )

    parser.add_argument(
        '--d', type=int, default=500,
        help='Sketch size (rows of the sketching operator)'
    )

    parser.add_argument(
        '--m', type=int, default=20000,
        help='Rows of the data matrix'
    )

    parser.add_argument(
        '--n', type=int, default=100,
        help='Columns of the data matrix'
    )

    parser.add_argument(
        '--threads', nargs='+', type=int, default=None,
        help='Thread counts to test (default: 1 2 4 8)'
    )

    parser.add_argument(
        '--repeats', type=int, default=3,
        help='Timed runs per thread count'
    )

    parser.add_argument(
        '--seed', type=int, default=42,
        help='Random seed for reproducibility'
    )

    parser.add_argument(
        '--output_dir', type=str, default='.',
        help='Directory to save output plots'
    )

    return parser.parse_args()


def make_operator(args: argparse.Namespace):
    """Unsampled d x m sketching operator described by the command line."""
    if args.sparse:
        return SparseSkOp(SparseDist(args.d, args.m, args.vec_nnz, MajorAxis.Short), args.seed)
    return DenseSkOp(DenseDist(args.d, args.m, FAMILY_MAP[args.family]), args.seed)


def operator_storage(S) -> Tuple[np.ndarray, ...]:
    if isinstance(S, SparseSkOp):
        return S.rows, S.cols, S.vals
    return (S.buff,)


def run_thread_count(
    args: argparse.Namespace,
    A: np.ndarray,
    threads: int
) -> Tuple[Dict[str, float], Tuple[np.ndarray, ...], np.ndarray]:
    """
    Time sampling and applying the operator with `threads` workers.

    Returns:
        Tuple of (median seconds per phase, operator storage, sketch)
    """
    d, m, n = args.d, args.m, args.n

    def realize():
        S = make_operator(args)
        S.realize()
        return S

    def apply(S):
        B = np.zeros(d * n)
        sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, d, n, m, 1.0, S, 0, 0, A, m, 0.0, B, d)
        return B

    with num_threads(threads):
        realize_times, S = time_repeats(realize, args.repeats, desc=f"realize x{threads}")
        apply_times, B = time_repeats(lambda: apply(S), args.repeats, desc=f"apply x{threads}")
        lazy_times, _ = time_repeats(lambda: apply(make_operator(args)), args.repeats,
                                     desc=f"lazy apply x{threads}")

    medians = {
        'realize': float(np.median(realize_times)),
        'apply': float(np.median(apply_times)),
        'realize on demand + apply': float(np.median(lazy_times)),
    }
    return medians, operator_storage(S), B


def run_experiment(args: argparse.Namespace, thread_counts: List[int]) -> None:
    """
    Run the complete timing experiment.

    Args:
        args: Parsed command line
        thread_counts: Thread counts to test
    """
    kind = f"sparse (vec_nnz={args.vec_nnz})" if args.sparse else args.family
    print(f"Sketching a {args.m} x {args.n} matrix down to {args.d} rows with a {kind} operator")
    A, _ = genmat(args.m, args.n, args.seed + 1, Layout.ColMajor)

    results = {}
    reference = None
    for threads in thread_counts:
        print(f"  > Running with {threads} thread(s)...")
        medians, storage, B = run_thread_count(args, A, threads)
        for phase, seconds in medians.items():
            results.setdefault(phase, []).append(seconds)
            print(f"    {phase}: {seconds:.4f}s")

        if reference is None:
            reference = (storage, B)
            continue
        if not all(np.array_equal(x, y) for x, y in zip(storage, reference[0])):
            print(f"  [Error] Operator sampled with {threads} threads differs from the first run")
        elif not np.array_equal(B, reference[1]):
            print(f"  [Warning] Sketch with {threads} threads is not bit-identical to the first run")

    title = f"{kind.title()} sketch of a {args.m} x {args.n} matrix (d={args.d})"
    filename = f"timings_{'sparse' if args.sparse else args.family}_d{args.d}_m{args.m}_n{args.n}.png"
    filepath = save_timing_plot(thread_counts, results, title, args.output_dir, filename)
    print(f"  Saved: {filepath}")


def main():
    """Main entry point."""
    args = parse_arguments()

    if min(args.d, args.m, args.n, args.repeats) < 1:
        print("Error: --d, --m, --n and --repeats must be positive")
        return
    if args.sparse and not 0 < args.vec_nnz <= min(args.d, args.m):
        print(f"Error: --vec_nnz must lie in [1, {min(args.d, args.m)}]")
        return

    thread_counts = args.threads if args.threads is not None else DEFAULT_THREADS
    if min(thread_counts) < 1:
        print(f"Error: Invalid thread counts: {thread_counts}")
        return

    run_experiment(args, thread_counts)


if __name__ == "__main__":
    main()
