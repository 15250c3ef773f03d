import os
from typing import Optional

import platformdirs


def get_models_dir() -> str:
    return os.path.join(
        platformdirs.user_data_dir("VoiceStream", appauthor=False), "models"
    )


def find_file_exact(directory: str, candidates: list[str]) -> Optional[str]:
    for name in candidates:
        path = os.path.join(directory, name)
        if os.path.exists(path):
            return path
    return None


def find_transducer_files(model_path: str) -> dict[str, Optional[str]]:
    return {
        "encoder": find_file_exact(
            model_path, ["encoder.int8.onnx", "encoder.onnx", "encoder.fp16.onnx"]
        ),
        "decoder": find_file_exact(
            model_path, ["decoder.int8.onnx", "decoder.onnx", "decoder.fp16.onnx"]
        ),
        "joiner": find_file_exact(
            model_path, ["joiner.int8.onnx", "joiner.onnx", "joiner.fp16.onnx"]
        ),
        "tokens": find_file_exact(model_path, ["tokens.txt"]),
    }
