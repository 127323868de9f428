import os
import matplotlib.pyplot as plt

def plot_hit_rates(stats, outpath):
    dirname = os.path.dirname(outpath)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    names = [s.name for s in stats]
    rates = [s.hit_rate * 100.0 for s in stats]
    plt.figure(figsize=(max(4, 1.5 * len(names)), 4))
    bars = plt.bar(names, rates)
    for bar, rate in zip(bars, rates):
        plt.annotate(f"{rate:.2f}%", (bar.get_x() + bar.get_width() / 2, rate),
                     ha="center", va="bottom", fontsize=8)
    plt.title("Hit Rate per Cache Configuration")
    plt.ylabel("Hit rate (%)")
    plt.ylim(0, 105)
    plt.grid(True, axis="y")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()
    return outpath
