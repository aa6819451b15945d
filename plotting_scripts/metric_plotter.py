import pickle
import numpy as np
import matplotlib.pyplot as plt

from plotting_scripts.plot_files import make_parser, resolve_plot_files

WATCH_STYLES = {
    'train' : {'color' : 'b', 'linestyle' : '-'},
    'valid' : {'color' : 'r', 'linestyle' : '--'},
}

def plot_metrics(data, path, show=False, logy=False):
    """
    Per-round evaluation metrics of a boosting fit, one panel per metric.

    Args:
        data (dict): {metric: {watch set name: array of per-round values}}.
        path (Path or str): Output path for the plot.
        show (bool): Whether to show the plot interactively.
        logy (bool): Plot Y axis on log scale.
    """

    metrics = list(data.keys())
    fig, axes = plt.subplots(1, len(metrics), figsize=(6 * len(metrics), 5), layout='constrained', squeeze=False)

    for ax, metric in zip(axes[0], metrics):
        for watch_name, values in data[metric].items():
            rounds = np.arange(1, len(values) + 1)
            style = WATCH_STYLES.get(watch_name, {})
            ax.plot(rounds, values, lw=2, label=f'{watch_name} ({values[-1]:.4f})', **style)

        ax.set_xlabel('Boosting Round', loc='right')
        ax.set_ylabel(metric, loc='top')
        ax.grid(linestyle='--', alpha=0.5)
        ax.legend(loc='best', fontsize='small')

        if logy:
            ax.set_yscale('log')

    if show:
        fig.show()

    fig.savefig(path)
    plt.close(fig)

def main(args):
    data_file, output_file = resolve_plot_files(args, 'metrics')

    with open(data_file, 'rb') as f:
        metric_data = pickle.load(f)

    plot_metrics(metric_data, output_file, show=False, logy=args.logy)
    return output_file

def cli():
    parser = make_parser('Re-plot the final model metric curves from their pickle')
    parser.add_argument('--logy', dest='logy', action='store_true',
        help='log scale y axis')
    args, _ = parser.parse_known_args()

    main(args)

if __name__ == '__main__':
    cli()
