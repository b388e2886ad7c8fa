"""
Command-line interface for terminal fractal rendering.

Computes frames through the engine and prints them as text cells.
"""

import logging
import multiprocessing as mp
import random
import sys
import time
from dataclasses import replace
from pathlib import Path

import click

from .. import __version__
from ..acceleration.numba_backend import numba_version
from ..acceleration.parallel import get_optimal_worker_count
from ..api import FractalEngine
from ..core.fractal_types import FractalRegistry, JULIA_PRESETS, parse_equation
from ..io.config import Config, load_config_from_args
from ..rendering.text import TextRenderer

logger = logging.getLogger(__name__)


def _fail(ctx, error: Exception):
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, verbose, quiet):
    """
    Terminal Fractals - escape-time fractals rendered as text.

    Computes Mandelbrot, Julia, Burning Ship, Tricorn and Multibrot
    frames with a parallel, cached engine.
    """
    # Setup logging
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Terminal Fractals v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba: {numba_version()}")
        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose


@main.command()
@click.argument('equation', default='z^2 + c')
@click.option('--width', '-w', type=int, help='Frame width in cells')
@click.option('--height', '-h', type=int, help='Frame height in cells')
@click.option('--center-x', type=float, help='Real part of the view centre')
@click.option('--center-y', type=float, help='Imaginary part of the view centre')
@click.option('--zoom', type=float, help='Zoom factor')
@click.option('--max-iter', type=int, help='Base iteration budget')
@click.option('--ascii', 'use_ascii', is_flag=True, help='Use ASCII instead of block characters')
@click.option('--no-color', is_flag=True, help='Disable ANSI colours')
@click.option('--performance', is_flag=True, help='Enable performance mode')
@click.option('--quality', is_flag=True, help='Enable quality mode')
@click.option('--supersample', is_flag=True, help='Enable 2x2 supersampling')
@click.option('--no-adaptive', is_flag=True, help='Disable adaptive sampling')
@click.option('--stats', is_flag=True, help='Print frame statistics after the frame')
@click.pass_context
def render(ctx, equation, width, height, center_x, center_y, zoom, max_iter,
           use_ascii, no_color, performance, quality, supersample, no_adaptive, stats):
    """
    Render one frame of EQUATION to the terminal.

    EQUATION: e.g. "z^3 + c", "julia(-0.7, 0.27)", "julia:rabbit", "tricorn"
    """
    try:
        config = load_config_from_args(ctx.obj.get('config_file'))
        descriptor = parse_equation(equation)

        viewport = config.to_viewport(width, height)
        center = complex(center_x if center_x is not None else viewport.center.real,
                         center_y if center_y is not None else viewport.center.imag)
        viewport = replace(viewport, center=center,
                           zoom=zoom if zoom is not None else viewport.zoom,
                           max_iterations=max_iter if max_iter is not None else viewport.max_iterations)

        policy = config.to_quality_policy()
        policy = replace(
            policy,
            performance_mode=policy.performance_mode or performance,
            quality_mode=policy.quality_mode or quality,
            adaptive_sampling=policy.adaptive_sampling and not no_adaptive,
            supersample_factor=2 if supersample else policy.supersample_factor,
        )

        engine = FractalEngine(config.to_engine_config())
        grid = engine.compute_frame(descriptor, viewport, policy)
        derived = engine.derive_quality(viewport, policy)

        renderer = TextRenderer(
            use_colors=config.display.use_colors and not no_color,
            use_unicode=config.display.use_unicode and not use_ascii,
            fine_gradation=derived.fine_gradation,
        )
        click.echo(renderer.render_to_string(grid), nl=False)

        if stats:
            click.echo(f"Fractal: {descriptor.get_description()}")
            click.echo(f"Centre: ({viewport.center.real:.6g}, {viewport.center.imag:.6g})  "
                       f"Zoom: {viewport.zoom:g}x")
            click.echo(f"Iterations: {derived.effective_max_iterations}  "
                       f"Stride: {derived.sample_stride}  "
                       f"Supersample: {derived.supersample_factor}x")
            click.echo(f"Frame time: {engine.last_frame_seconds * 1000:.1f} ms")
            cache = engine.cache_stats()
            click.echo(f"Cache: {cache['entry_count']} entries, {cache['hit_count']} hits, "
                       f"{cache['miss_count']} misses")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('equation', default='z^2 + c')
@click.option('--frames', '-n', type=click.IntRange(min=1), default=10, help='Number of frames to show')
@click.option('--width', '-w', type=int, help='Frame width in cells')
@click.option('--height', '-h', type=int, help='Frame height in cells')
@click.option('--interval-ms', type=click.IntRange(min=0),
              help='Pause between frames (defaults to the configured auto-generation interval)')
@click.option('--seed', type=int, help='Random seed for a repeatable path')
@click.option('--ascii', 'use_ascii', is_flag=True, help='Use ASCII instead of block characters')
@click.option('--no-color', is_flag=True, help='Disable ANSI colours')
@click.pass_context
def explore(ctx, equation, frames, width, height, interval_ms, seed, use_ascii, no_color):
    """
    Auto-explore EQUATION: zoom in slowly with a random drift.

    Each next frame is submitted to the engine in the background while the
    current one is shown.
    """
    try:
        config = load_config_from_args(ctx.obj.get('config_file'))
        descriptor = parse_equation(equation)
        viewport = config.to_viewport(width, height)
        policy = config.to_quality_policy()
        rng = random.Random(seed)
        if interval_ms is None:
            interval_ms = config.fractal.auto_generation_interval_ms

        with FractalEngine(config.to_engine_config()) as engine:
            future = engine.submit_frame(descriptor, viewport, policy)
            for index in range(frames):
                grid = future.result()
                shown = viewport
                if index + 1 < frames:
                    viewport = config.auto_explore(viewport, rng)
                    future = engine.submit_frame(descriptor, viewport, policy)

                renderer = TextRenderer(
                    use_colors=config.display.use_colors and not no_color,
                    use_unicode=config.display.use_unicode and not use_ascii,
                    fine_gradation=engine.derive_quality(shown, policy).fine_gradation,
                )
                click.echo(renderer.render_to_string(grid), nl=False)
                click.echo(f"Frame {index + 1}/{frames}  Zoom: {shown.zoom:.2f}x  "
                           f"Centre: ({shown.center.real:.6g}, {shown.center.imag:.6g})")

                if index + 1 < frames and interval_ms:
                    time.sleep(interval_ms / 1000.0)

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.option('--size', type=str, default='160x80', help='Benchmark frame size (widthxheight)')
@click.option('--iterations', type=int, default=500, help='Iteration budget for benchmark')
@click.option('--workers', type=int, help='Number of worker threads')
@click.argument('equation', default='z^2 + c')
@click.pass_context
def benchmark(ctx, size, iterations, workers, equation):
    """
    Benchmark uncached frame evaluation.
    """
    try:
        try:
            width, height = map(int, size.lower().split('x'))
        except ValueError:
            click.echo("Error: Invalid size format. Use 'widthxheight'", err=True)
            sys.exit(1)

        config = load_config_from_args(ctx.obj.get('config_file')).to_engine_config()
        if workers:
            config.num_workers = workers
        engine = FractalEngine(config)
        results = engine.benchmark(width, height, iterations, parse_equation(equation))

        click.echo("Terminal Fractals Performance Benchmark")
        click.echo(f"Frame size: {results['resolution']} ({width * height:,} cells)")
        click.echo(f"Fractal: {results['fractal']}")
        click.echo(f"Max iterations: {results['max_iterations']}")
        click.echo(f"Workers: {results['num_workers']}  Tile size: {results['tile_size']}")
        click.echo(f"Time: {results['time'] * 1000:.1f} ms "
                   f"({results['cells_per_second']:,.0f} cells/sec)")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('output', type=click.Path(), default='termfractal.json')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@click.pass_context
def init_config(ctx, output, force):
    """
    Create a configuration file with default values.
    """
    try:
        output_path = Path(output)
        if output_path.exists() and not force:
            click.echo(f"Error: {output_path} already exists (use --force to overwrite)", err=True)
            sys.exit(1)

        Config().save_to_file(output_path)
        click.echo(f"Configuration file created: {output_path}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.argument('config_file', type=click.Path(exists=True))
@click.pass_context
def validate_config(ctx, config_file):
    """Validate a configuration file."""
    try:
        Config.load_from_file(config_file)
    except Exception as e:
        click.echo(f"✗ Configuration file has errors: {config_file}")
        click.echo(f"  Error: {e}")
        sys.exit(1)

    click.echo(f"✓ Configuration file is valid: {config_file}")


@main.command()
@click.pass_context
def list_fractals(ctx):
    """List available fractal types and Julia presets."""
    try:
        click.echo("Available fractal types:")
        for name, description in FractalRegistry.list_fractals().items():
            click.echo(f"  {name}")
            if ctx.obj.get('verbose'):
                click.echo(f"    {description}")

        click.echo("\nJulia set presets (use julia:<name>):")
        for name, c in JULIA_PRESETS.items():
            click.echo(f"  {name}: c = {c}")

    except Exception as e:
        _fail(ctx, e)


@main.command()
@click.pass_context
def system_info(ctx):
    """Display parallelism and JIT information."""
    try:
        click.echo("System Information:")
        click.echo(f"  CPU cores: {mp.cpu_count()}")
        click.echo(f"  Worker threads: {get_optimal_worker_count()}")
        click.echo(f"  Numba: {numba_version()}")

    except Exception as e:
        _fail(ctx, e)


if __name__ == '__main__':
    main()
