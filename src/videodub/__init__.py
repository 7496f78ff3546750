"""
Video Translation Service - translate and dub videos over HTTP.

A small web service for:
- Accepting a video upload, a direct video URL, or a YouTube link
- Translating its spoken content with Gemini (timestamped segments)
- Synthesizing dubbed speech with gTTS or OpenAI TTS
- Replacing the video's audio track with ffmpeg
- Caching results per source and target language
"""

__version__ = "0.1.0"
