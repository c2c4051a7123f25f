import asyncio
import os
import sys

# Add project root to path so we can import wikatalk
sys.path.append(os.getcwd())

from wikatalk.config.settings import settings
from wikatalk.pipelines.audio import AudioAnalyzer
from wikatalk.services.silence import FFmpegSilenceDetector


async def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/analyze_audio.py path/to/recording.webm")
        return

    file_path = sys.argv[1]
    if not os.path.exists(file_path):
        print(f"File '{file_path}' not found.")
        return

    print(f"Reading {file_path}...")
    with open(file_path, "rb") as f:
        audio_bytes = f.read()

    detector = FFmpegSilenceDetector.from_config(settings.analyzer)
    print(f"Running {detector.filter_spec} over {len(audio_bytes)} bytes...")

    analyzer = AudioAnalyzer(
        detector,
        speech_threshold_percent=settings.analyzer.speech_threshold_percent,
    )
    result = await analyzer.analyze(audio_bytes)

    print("\n--- Analysis Result ---")
    print(f"decision:          {result.decision.value}")
    print(f"has_speech:        {result.has_speech}")
    print(f"total_duration:    {result.total_duration}")
    print(f"silence_duration:  {result.silence_duration:.2f}s ({result.silence_count} runs)")
    print(f"speech_percentage: {result.speech_percentage:.1f}%")
    print("-----------------------")


if __name__ == "__main__":
    asyncio.run(main())
