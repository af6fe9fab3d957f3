"""
Download all required model weights to the persistent storage volume.
This script provides explicit logging of download locations for verification.
"""
import os
import sys

import torch
from torchvision import models

from product_studio.core.backend import Precision
from product_studio.core.model_manager import CACHE_DIR, LOAD_PARAMS
from product_studio.core.process_lock import weights_lock


def required_architectures():
    """Every torchvision architecture any (model kind, precision) pair can load."""
    names = []
    for per_precision in LOAD_PARAMS.values():
        for precision in Precision:
            name = per_precision[precision].architecture
            if name not in names:
                names.append(name)
    return names


def download_models():
    """Download all models with proper error handling."""
    print("=" * 70)
    print("Model Download Script - Product Studio Service")
    print("=" * 70)
    print(f"--> All models will be saved to: {CACHE_DIR}")
    os.makedirs(CACHE_DIR, exist_ok=True)
    torch.hub.set_dir(CACHE_DIR)

    architectures = required_architectures()
    failed = 0
    for i, name in enumerate(architectures, start=1):
        print(f"\n[{i}/{len(architectures)}] Fetching {name} weights...")
        try:
            with weights_lock:
                weights = models.get_model_weights(name).DEFAULT
                weights.get_state_dict(progress=True)
            print(f"      ✓ {name} ({weights}) cached under {CACHE_DIR}")
        except Exception as e:
            print(f"      ERROR: Failed to download {name}: {e}")
            failed += 1

    print("\n" + "=" * 70)
    if failed:
        print(f"{failed} of {len(architectures)} models failed to download.")
        print("=" * 70)
        return 1
    print("All required models downloaded successfully!")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(download_models())
