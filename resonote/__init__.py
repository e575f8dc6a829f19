"""
Resonote - play, record and replay short note performances.

Press keys (computer keyboard, MIDI keyboard or OSC) and a small triangle
synth plays them.  Arm the recorder and every key transition is captured
with its time offset; pause and resume without leaving gaps; stop (or hit the
15 second ceiling) and the take is archived.  Archived takes and the built-in
motif library replay through the same synth, lighting keys as they go.  An
optional text-generation advisor names your takes and composes motifs from a
mood prompt.

What is in the box:

- **Tone synthesizer.** Triangle oscillator with a 50 ms linear attack and an
  exponential release, mixed in a ``sounddevice`` output stream.  With no
  audio device it degrades to silent handles instead of failing.
- **Recorder.** Live-time offsets that exclude paused time, a 15 second
  live-time ceiling, and normalized logs (no orphan or dangling notes).
- **Playback.** Single-flight slots with toggle semantics; stopping never
  cancels timers, it just makes them stale.
- **Archive.** In-memory or JSON file store, versioned records, MIDI export
  via ``mido``.
- **Surfaces.** Terminal keys, MIDI input, OSC in/out, and a live status line.

Minimal example:

    ```python
    import asyncio
    import resonote

    async def main ():
        studio = resonote.Studio(resonote.LoopTimeline())
        studio.play_motif("SuperMarioJump")
        await asyncio.sleep(1.5)
        studio.close()

    asyncio.run(main())
    ```

Package-level exports: ``Studio``, ``LoopTimeline``, ``VirtualTimeline``, ``load_config``.
"""

import resonote.clock
import resonote.config
import resonote.studio


Studio = resonote.studio.Studio
LoopTimeline = resonote.clock.LoopTimeline
VirtualTimeline = resonote.clock.VirtualTimeline
load_config = resonote.config.load_config
