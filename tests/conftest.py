import os

# plots are only ever saved to files
os.environ.setdefault("MPLBACKEND", "Agg")
