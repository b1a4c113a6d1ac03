"""speechhmm training statistics and QC plotting."""

from typing import Dict, List

import numpy as np

from speechhmm.core.codebook import Codebook


class TrainingStats:
    """Collects codebook and HMM training statistics."""

    def __init__(self):
        self.distortion_history: List[List[float]] = []  # per LBG round
        self.codebook_size = 0
        self.rounds: List[Dict[str, list]] = []

    def add_codebook(self, codebook: Codebook):
        """Record the LBG distortion history of a codebook."""
        self.codebook_size = codebook.size
        self.distortion_history = [list(h) for h in codebook.distortion_history]

    def add_round(self, round_no: int, contexts):
        """Record per-utterance results of one training round."""
        while len(self.rounds) <= round_no:
            self.rounds.append({'iterations': [], 'probabilities': [], 'stop_reasons': []})
        entry = self.rounds[round_no]
        for ctx in contexts:
            entry['iterations'].append(ctx.iterations)
            entry['probabilities'].append(ctx.best_probability)
            entry['stop_reasons'].append(ctx.stop_reason)

    def get_summary(self) -> dict:
        """Generate summary statistics."""
        summary = {'codebook_size': self.codebook_size,
                   'lbg_rounds': len(self.distortion_history)}

        if self.distortion_history:
            summary['final_distortion'] = self.distortion_history[-1][-1]
            summary['lloyd_iterations'] = sum(len(h) for h in self.distortion_history)

        summary['training_rounds'] = len(self.rounds)
        for i, entry in enumerate(self.rounds):
            iters = entry['iterations']
            if not iters:
                continue
            probs = np.array(entry['probabilities'])
            summary[f'round{i}_utterances'] = len(iters)
            summary[f'round{i}_iterations_mean'] = float(np.mean(iters))
            summary[f'round{i}_iterations_max'] = int(np.max(iters))
            positive = probs[probs > 0]
            if len(positive):
                summary[f'round{i}_log10_viterbi_median'] = float(np.median(np.log10(positive)))
            summary[f'round{i}_underflows'] = entry['stop_reasons'].count('underflow')
        return summary

    def write_summary(self, filepath: str):
        """Write summary statistics to a text file."""
        summary = self.get_summary()

        with open(filepath, 'w') as f:
            f.write("speechhmm Training Statistics\n")
            f.write("=" * 50 + "\n\n")

            f.write("Codebook\n")
            f.write("-" * 30 + "\n")
            f.write(f"Size:                       {summary['codebook_size']}\n")
            f.write(f"LBG rounds:                 {summary['lbg_rounds']}\n")
            if 'final_distortion' in summary:
                f.write(f"Lloyd iterations (total):   {summary['lloyd_iterations']}\n")
                f.write(f"Final distortion:           {summary['final_distortion']:.6f}\n")
            f.write("\n")

            if self.rounds:
                f.write("HMM Training\n")
                f.write("-" * 30 + "\n")
                for i in range(summary['training_rounds']):
                    if f'round{i}_utterances' not in summary:
                        continue
                    f.write(f"Round {i}:\n")
                    f.write(f"  Utterances:               {summary[f'round{i}_utterances']}\n")
                    f.write(f"  Iterations (mean / max):  "
                            f"{summary[f'round{i}_iterations_mean']:.1f} / "
                            f"{summary[f'round{i}_iterations_max']}\n")
                    if f'round{i}_log10_viterbi_median' in summary:
                        f.write(f"  log10 P* (median):        "
                                f"{summary[f'round{i}_log10_viterbi_median']:.2f}\n")
                    f.write(f"  Underflows:               {summary[f'round{i}_underflows']}\n")

    def plot_distributions(self, output_prefix: str) -> str:
        """Generate QC plots as a multi-page PDF. Returns the PDF path."""
        import matplotlib
        matplotlib.use('Agg')  # Non-interactive backend
        import matplotlib.pyplot as plt
        from matplotlib.backends.backend_pdf import PdfPages

        pdf_path = f"{output_prefix}_stats.pdf"

        with PdfPages(pdf_path) as pdf:
            # Page 1: LBG distortion per Lloyd iteration
            fig, ax = plt.subplots(figsize=(8, 5))
            if self.distortion_history:
                offset = 0
                for r, hist in enumerate(self.distortion_history):
                    x = np.arange(offset, offset + len(hist))
                    ax.plot(x, hist, marker='o', label=f'Size {2 ** (r + 1)}')
                    offset += len(hist)
                ax.set_xlabel('Lloyd iteration')
                ax.set_ylabel('Average distortion')
                ax.legend(fontsize=8)
            else:
                ax.text(0.5, 0.5, 'No codebook data', ha='center', va='center',
                        transform=ax.transAxes)
            ax.set_title('LBG Distortion')
            plt.tight_layout()
            pdf.savefig(fig)
            plt.close(fig)

            # Page 2: Baum-Welch iterations and Viterbi probabilities per round
            fig, axes = plt.subplots(1, 2, figsize=(10, 4))
            ax = axes[0]
            if self.rounds:
                ax.boxplot([e['iterations'] for e in self.rounds])
                ax.set_xlabel('Round')
                ax.set_ylabel('Iterations')
            ax.set_title('Baum-Welch Iterations per Utterance')

            ax = axes[1]
            logs = []
            for e in self.rounds:
                p = np.array(e['probabilities'])
                logs.append(np.log10(p[p > 0]) if np.any(p > 0) else np.array([np.nan]))
            if logs:
                ax.boxplot(logs)
                ax.set_xlabel('Round')
                ax.set_ylabel('log10 P*')
            ax.set_title('Viterbi Probability per Utterance')
            plt.tight_layout()
            pdf.savefig(fig)
            plt.close(fig)

        print(f"QC plots saved to: {pdf_path}")
        return pdf_path
