"""mutcounter: per-position mutation rates from MD-tagged alignments.

Each read's CIGAR string and MD tag are walked base by base and reconciled into a single
classification (match, substitution, deletion, insertion, soft clip). Counts are kept per
chromosome, strand and position. Most users should use the CLI:

    mutcounter count --bam sample.bam --outdir results/

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
