from rag_agent_orchestrator.cli import main

raise SystemExit(main())
