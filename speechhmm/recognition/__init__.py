"""Model selection for quantized utterances."""

from speechhmm.recognition.recognizer import HMMRecognizer, RecognitionResult, NO_MATCH

__all__ = [
    'HMMRecognizer',
    'RecognitionResult',
    'NO_MATCH',
]
