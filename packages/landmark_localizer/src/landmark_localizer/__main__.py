from __future__ import annotations

from landmark_localizer.entry import main

raise SystemExit(main())
