"""
Persistence collaborators implementing core.ports.TaskListRepo.

- mongo_repo.py: MongoDB (motor), one document per task list
- memory_repo.py: process-local store with the same document shape
"""
