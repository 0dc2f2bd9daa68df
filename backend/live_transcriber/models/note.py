"""
Output data model: decoded notes and ordered note sequences.

``Note.pitch`` is the model's pitch index (0 = A0 on an 88-key piano). Mapping
to an absolute MIDI note number is the consumer's job; ``midi_pitch()`` does
it with the usual +21 offset.
"""

from dataclasses import asdict, dataclass, replace
from typing import Dict, Iterable, Iterator, List, Optional

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

# Pitch index 0 of the piano-range model is A0 (MIDI 21)
MIDI_OFFSET = 21


def midi_to_note(midi_pitch: int) -> str:
    """Convert MIDI pitch number to note name (e.g., 60 -> C4)"""
    octave = (midi_pitch // 12) - 1
    return f"{NOTE_NAMES[midi_pitch % 12]}{octave}"


@dataclass(frozen=True)
class Note:
    """A decoded note; times are in seconds"""
    pitch: int  # pitch index (0-127, 0-87 for the piano model)
    start_time: float
    end_time: float
    velocity: int  # MIDI velocity (0-127)

    def __post_init__(self):
        if not 0 <= self.pitch <= 127:
            raise ValueError(f"pitch out of range: {self.pitch}")
        if not 0 <= self.velocity <= 127:
            raise ValueError(f"velocity out of range: {self.velocity}")
        if not self.end_time > self.start_time:
            raise ValueError(
                f"note must end after it starts ({self.start_time} -> {self.end_time})"
            )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def name(self) -> str:
        return midi_to_note(self.pitch + MIDI_OFFSET)

    def midi_pitch(self, offset: int = MIDI_OFFSET) -> int:
        return self.pitch + offset

    def shifted(self, seconds: float) -> "Note":
        return replace(self, start_time=self.start_time + seconds,
                       end_time=self.end_time + seconds)

    def to_dict(self) -> Dict:
        return asdict(self)

    def __str__(self) -> str:
        """
        Format as ``"C4: 60>> 0.125-0.5"``.

        The name uses MIDI octave numbering, so index 39 is C4 and octaves
        change at C. Naming index ``p`` from an A-based table
        (``["A", "A#", ..., "G#"][p % 12]`` with octave ``p // 12``) would call
        index 39 C3, so strings from such tools differ from these.
        """
        return f"{self.name}: {self.velocity}>> {self.start_time}-{self.end_time}"


class NoteSequence:
    """
    Ordered collection of notes.

    The segmenter appends notes in the order they close, which is
    time-ascending per pitch but not globally sorted by onset; use
    ``sorted_by_onset()`` when global ordering matters.
    """

    def __init__(self, notes: Optional[Iterable[Note]] = None):
        self._notes: List[Note] = list(notes) if notes is not None else []

    def append(self, note: Note) -> None:
        self._notes.append(note)

    def __iter__(self) -> Iterator[Note]:
        return iter(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def __getitem__(self, index):
        return self._notes[index]

    def __bool__(self) -> bool:
        return bool(self._notes)

    def __eq__(self, other) -> bool:
        if isinstance(other, NoteSequence):
            return self._notes == other._notes
        if isinstance(other, list):
            return self._notes == other
        return NotImplemented

    @property
    def notes(self) -> List[Note]:
        return list(self._notes)

    def sorted_by_onset(self) -> "NoteSequence":
        return NoteSequence(sorted(self._notes, key=lambda n: (n.start_time, n.pitch)))

    def shifted(self, seconds: float) -> "NoteSequence":
        """Return a copy with every note moved by ``seconds``"""
        return NoteSequence(n.shifted(seconds) for n in self._notes)

    def to_dicts(self, midi_offset: Optional[int] = None) -> List[Dict]:
        """
        Serialise notes for JSON transport.

        When ``midi_offset`` is given each dict also carries ``midi_pitch``
        and the note ``name``.
        """
        out = []
        for note in self._notes:
            data = note.to_dict()
            if midi_offset is not None:
                data["midi_pitch"] = note.midi_pitch(midi_offset)
                data["name"] = note.name
            out.append(data)
        return out

    def __repr__(self) -> str:
        return f"NoteSequence({self._notes!r})"

    def __str__(self) -> str:
        return "[" + ", ".join(str(n) for n in self._notes) + "]"
