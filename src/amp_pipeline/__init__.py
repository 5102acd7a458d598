"""amp-pipeline: annotate antimicrobial peptide predictions with homology evidence."""

__version__ = "0.1.0"
