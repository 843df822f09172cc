"""ffmpeg argument builders for preview, capture and watermarking."""

from pathlib import Path

from kiosk_capture.domain.overlays import LogoPosition, OverlayFiles

LOGO_WIDTH = 260
LOGO_PADDING = 30
PREVIEW_MAX_WIDTH = 900

_INPUT_ARGS = ["-rtsp_transport", "tcp"]


def logo_xy(position: str, pad: int = LOGO_PADDING) -> str:
    """Return the overlay x:y expression for a named logo anchor.

    ``W``/``H`` are the base canvas, ``w``/``h`` the scaled logo. Unknown
    anchors center the logo.
    """
    anchors = {
        LogoPosition.TOP_LEFT: f"{pad}:{pad}",
        LogoPosition.TOP_CENTER: f"(W-w)/2:{pad}",
        LogoPosition.TOP_RIGHT: f"W-w-{pad}:{pad}",
        LogoPosition.MIDDLE_LEFT: f"{pad}:(H-h)/2",
        LogoPosition.MIDDLE_RIGHT: f"W-w-{pad}:(H-h)/2",
        LogoPosition.BOTTOM_LEFT: f"{pad}:H-h-{pad}",
        LogoPosition.BOTTOM_CENTER: f"(W-w)/2:H-h-{pad}",
        LogoPosition.BOTTOM_RIGHT: f"W-w-{pad}:H-h-{pad}",
    }
    return anchors.get(position, "(W-w)/2:(H-h)/2")


def build_filter_graph(
    has_frame: bool,
    has_logo: bool,
    logo_position: str = LogoPosition.TOP_LEFT,
    logo_width: int = LOGO_WIDTH,
) -> str | None:
    """Build the composition graph for the selected overlays.

    Input 0 is the camera feed, the frame (if any) is input 1 and the logo
    follows it. The graph always ends in ``[out]``.
    """
    if not has_frame and not has_logo:
        return None
    parts: list[str] = []
    base = "[0:v]"
    if has_frame:
        parts.append("[1:v][0:v]scale2ref=w=iw:h=ih[frame][base]")
        base = "[base]"
        if has_logo:
            parts.append(f"{base}[frame]overlay=0:0:format=auto[tmp]")
            base = "[tmp]"
        else:
            parts.append(f"{base}[frame]overlay=0:0:format=auto[out]")
    if has_logo:
        logo_input = 2 if has_frame else 1
        parts.append(f"[{logo_input}:v]scale={logo_width}:-1[logo]")
        parts.append(
            f"{base}[logo]overlay={logo_xy(logo_position)}:format=auto[out]"
        )
    return ";".join(parts)


def _overlay_inputs(overlay: OverlayFiles | None) -> tuple[list[str], str | None]:
    if overlay is None:
        return [], None
    args: list[str] = []
    if overlay.frame_path is not None:
        args += ["-i", str(overlay.frame_path)]
    if overlay.logo_path is not None:
        args += ["-i", str(overlay.logo_path)]
    graph = build_filter_graph(
        has_frame=overlay.frame_path is not None,
        has_logo=overlay.logo_path is not None,
        logo_position=overlay.logo_position,
    )
    return args, graph


def _graph_args(graph: str | None) -> list[str]:
    if graph is None:
        return []
    return ["-filter_complex", graph, "-map", "[out]"]


def live_stream_args(  # noqa: PLR0913
    source_url: str,
    playlist_path: Path,
    segment_pattern: Path,
    overlay: OverlayFiles | None = None,
    segment_seconds: int = 1,
    list_size: int = 4,
) -> list[str]:
    """Arguments for a low-latency rolling HLS preview."""
    inputs, graph = _overlay_inputs(overlay)
    return [
        *_INPUT_ARGS,
        "-fflags",
        "nobuffer",
        "-flags",
        "low_delay",
        "-i",
        source_url,
        *inputs,
        *_graph_args(graph),
        "-an",
        "-c:v",
        "libx264",
        "-preset",
        "veryfast",
        "-tune",
        "zerolatency",
        "-pix_fmt",
        "yuv420p",
        "-g",
        "30",
        "-sc_threshold",
        "0",
        "-f",
        "hls",
        "-hls_time",
        str(segment_seconds),
        "-hls_list_size",
        str(list_size),
        "-hls_flags",
        "delete_segments+omit_endlist",
        "-hls_segment_filename",
        str(segment_pattern),
        str(playlist_path),
    ]


def photo_args(
    source_url: str, output_path: Path, overlay: OverlayFiles | None = None
) -> list[str]:
    """Arguments that grab a single JPEG frame."""
    inputs, graph = _overlay_inputs(overlay)
    return [
        "-y",
        *_INPUT_ARGS,
        "-i",
        source_url,
        *inputs,
        *_graph_args(graph),
        "-frames:v",
        "1",
        "-q:v",
        "2",
        str(output_path),
    ]


def clip_args(
    source_url: str,
    output_path: Path,
    duration_seconds: int,
    overlay: OverlayFiles | None = None,
) -> list[str]:
    """Arguments that record a fixed-length MP4 clip."""
    inputs, graph = _overlay_inputs(overlay)
    return [
        "-y",
        *_INPUT_ARGS,
        "-i",
        source_url,
        *inputs,
        "-t",
        str(duration_seconds),
        *_graph_args(graph),
        "-c:v",
        "libx264",
        "-preset",
        "veryfast",
        "-pix_fmt",
        "yuv420p",
        "-movflags",
        "+faststart",
        "-an",
        str(output_path),
    ]


def preview_args(
    input_path: Path, output_path: Path, watermark: str, is_photo: bool
) -> list[str]:
    """Arguments for a downsized, watermark-stamped preview."""
    text = watermark.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    vf = (
        f"scale='min({PREVIEW_MAX_WIDTH},iw)':-2,"
        f"drawtext=text='{text}':x=(w-text_w)/2:y=h-(text_h*2):"
        "fontcolor=white@0.85:fontsize=36:box=1:boxcolor=black@0.45:boxborderw=20"
    )
    if is_photo:
        return ["-y", "-i", str(input_path), "-vf", vf, "-q:v", "8", str(output_path)]
    return [
        "-y",
        "-i",
        str(input_path),
        "-vf",
        vf,
        "-c:v",
        "libx264",
        "-preset",
        "veryfast",
        "-crf",
        "30",
        "-an",
        "-movflags",
        "+faststart",
        str(output_path),
    ]
