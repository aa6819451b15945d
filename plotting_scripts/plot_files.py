import yaml
import argparse
from pathlib import Path

DEFAULT_OUTPUT_DIR = 'output'


def make_parser(description):
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument('-c', '--config', dest='config',
        type=str, required=True, help='solution configuration file (.yml)')
    parser.add_argument('-f', '--file', dest='input_file',
        type=str, help='pickle data file, defaults to <output_dir>/plots/<name>.pkl')
    parser.add_argument('-o', '--output', dest='output',
        type=str, help='output directory, defaults to <output_dir>/plots')
    parser.add_argument('-l', '--label', dest='label',
        type=str, help='suffix added to the output file name')
    return parser


def resolve_plot_files(args, name):
    """
    Pickle to re-plot and the pdf to write for plot `name`. Both default to
    the plots/ directory under the output_dir of the solution config.
    """
    with open(args.config, 'r') as f:
        cfg = yaml.safe_load(f) or {}
    plot_dir = Path((cfg.get('output') or {}).get('output_dir', DEFAULT_OUTPUT_DIR)) / 'plots'

    data_file = Path(args.input_file) if args.input_file else plot_dir / f'{name}.pkl'
    if not data_file.is_file():
        raise FileNotFoundError(f'Cannot find data file: {data_file}')

    output_file = (Path(args.output) if args.output else plot_dir) / f'{name}.pdf'
    if args.label:
        output_file = output_file.with_stem(f'{output_file.stem}_{args.label}')
    output_file.parent.mkdir(parents=True, exist_ok=True)

    return data_file, output_file
