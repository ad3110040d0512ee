from typing import Tuple
from vidproxy.models.internal import MediaFormat, Strategy

AUDIO_EXT = {
    MediaFormat.MP4: "m4a",
    MediaFormat.WEBM: "webm",
}


class FormatDecision:
    """Make format decisions"""

    @staticmethod
    def strategies(media_format: MediaFormat, max_height: int) -> Tuple[Strategy, ...]:
        """Ordered download strategies for one output format.

        Order is fixed: capped best quality, then worst quality, then (video
        only) a forced re-encode.
        """
        if media_format == MediaFormat.MP3:
            audio_args = ('--extract-audio', '--audio-format', 'mp3')
            return (
                Strategy("best", "bestaudio/best", audio_args),
                Strategy("worst", "worstaudio/worst", audio_args),
            )

        ext = media_format.value
        audio_ext = AUDIO_EXT[media_format]
        h = max_height
        return (
            Strategy(
                "best",
                f"bestvideo[ext={ext}][height<={h}]+bestaudio[ext={audio_ext}]/"
                f"best[ext={ext}][height<={h}]/best[height<={h}]",
                ('--merge-output-format', ext),
            ),
            Strategy("worst", f"worst[ext={ext}]/worst"),
            Strategy(
                "recode",
                f"best[height<={h}]/best",
                ('--recode-video', ext),
            ),
        )

    @staticmethod
    def media_type(filename: str) -> str:
        """Content type by extension"""
        ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
        return {
            'mp4': 'video/mp4',
            'webm': 'video/webm',
            'mp3': 'audio/mpeg',
            'm4a': 'audio/mp4',
        }.get(ext, 'application/octet-stream')
