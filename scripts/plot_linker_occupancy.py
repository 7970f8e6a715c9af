"""Plot pooled configuration probabilities against calcium concentration.

Reads a flat table written by sample_linker_occupancy.py and draws, for each
occupancy configuration, the pooled mean and a 5-95% band.

Usage:
  python3 scripts/plot_linker_occupancy.py --samples notes/linker_samples.csv \
    --out notes/fig_linker_occupancy.png
"""

from __future__ import annotations

import argparse

import matplotlib.pyplot as plt

from linker_occupancy.export import load_csv
from linker_occupancy.summary import pooled_summary
from linker_occupancy.utils import CONFIG_LABELS, TYPICAL_MASK


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--samples", required=True)
    ap.add_argument("--out", required=True)
    args = ap.parse_args()

    samples, conc = load_csv(args.samples)
    s = pooled_summary(samples, quantiles=(0.05, 0.95))

    fig, axes = plt.subplots(1, 2, figsize=(10.0, 4.2), sharey=True)
    for k, label in enumerate(CONFIG_LABELS):
        ax = axes[0] if TYPICAL_MASK[k] else axes[1]
        line, = ax.plot(conc, s.mean[:, k], lw=2.0, label=label)
        ax.fill_between(conc, s.quantiles[0, :, k], s.quantiles[1, :, k],
                        color=line.get_color(), alpha=0.2)

    axes[0].set_title("Typical configurations")
    axes[1].set_title("Atypical configurations")
    for ax in axes:
        ax.set_xscale("log")
        ax.set_xlabel(r"[Ca$^{2+}$]")
        ax.grid(True, alpha=0.25)
        ax.legend(frameon=False)
    axes[0].set_ylabel("probability")

    fig.tight_layout()
    fig.savefig(args.out, dpi=200)
    print(f"Wrote: {args.out}")


if __name__ == "__main__":
    main()
