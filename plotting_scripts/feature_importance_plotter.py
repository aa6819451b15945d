import pickle
import numpy as np
import matplotlib
import matplotlib.pyplot as plt

from plotting_scripts.plot_files import make_parser, resolve_plot_files

def plot_feature_importance(data, path, show=False, importance_type='Gain'):
    """
    Main plotting logic for Feature Importance.

    Args:
        data (dict): Dictionary containing 'features' (list, most important first) and
            'feature_imps' (dict of arrays keyed by importance type).
        path (Path or str): Output path for the plot.
        show (bool): Whether to show the plot interactively.
        importance_type (str): Importance type drawn as the main bar ('Gain', 'Cover' or 'Frequency').
    """

    features = data['features']
    feature_imps = data['feature_imps']

    n_types = len(feature_imps)
    n_features = len(features)

    fig, ax = plt.subplots(figsize=(10, max(4, 0.3 * n_features + 2)), layout='constrained')

    # Selected importance type first, the others faded next to it
    ordered = [importance_type] + [k for k in feature_imps if k != importance_type]
    total_width = 0.8
    bar_height = total_width / n_types
    y_indices = np.arange(n_features)

    colors = matplotlib.colormaps['viridis'].resampled(n_types)

    for i, label in enumerate(ordered):
        offset = (i - n_types/2) * bar_height + bar_height/2

        ax.barh(
            y_indices + offset,
            feature_imps[label],
            height=bar_height,
            label=label,
            align='center',
            alpha=0.8 if label == importance_type else 0.4,
            color=colors(i)
        )

    ax.set_xlabel('Relative Importance', loc='right')
    ax.set_ylabel('Features', loc='top')

    ax.set_yticks(y_indices)
    ax.set_yticklabels(features)

    # Most important feature on top
    ax.invert_yaxis()

    ax.legend(title='Importance', loc='lower right')
    ax.grid(axis='x', linestyle='--', alpha=0.5)

    if show:
        fig.show()

    fig.savefig(path)
    plt.close(fig)

def main(args):
    data_file, output_file = resolve_plot_files(args, 'feature_importance')

    with open(data_file, 'rb') as f:
        feature_importance_data = pickle.load(f)

    plot_feature_importance(feature_importance_data, output_file, show=False, importance_type=args.importance_type)
    return output_file

def cli():
    parser = make_parser('Re-plot the final model feature importance from its pickle')
    parser.add_argument('-t', '--type', dest='importance_type', default='Gain',
        choices=['Gain', 'Cover', 'Frequency'], help='importance type to highlight')
    args, _ = parser.parse_known_args()

    main(args)

if __name__ == '__main__':
    cli()
