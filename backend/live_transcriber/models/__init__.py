from live_transcriber.models.note import MIDI_OFFSET, Note, NoteSequence, midi_to_note

__all__ = ["MIDI_OFFSET", "Note", "NoteSequence", "midi_to_note"]
