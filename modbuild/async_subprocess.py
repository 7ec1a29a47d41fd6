#!/usr/bin/env python3
"""
Async subprocess runner for modbuild.

Every external collaborator (transform engine, declaration emitter, style
toolchain, binary packager) is launched through this module so that each
invocation is a suspension point on the event loop.
"""

import os
import asyncio
import logging
from typing import List, Dict, Any, Optional, Union

logger = logging.getLogger("modbuild.async_subprocess")


class AsyncSubprocessManager:
    """
    Async subprocess manager with process tracking.

    No timeout is applied unless one is passed explicitly; build stages run
    until the tool exits.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._active_processes: Dict[str, asyncio.subprocess.Process] = {}
        self._counter = 0
        self._stats = {
            'started': 0,
            'completed': 0,
            'failed': 0,
            'timeout': 0,
        }

    async def run_async(
        self,
        cmd: List[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        input_data: Optional[Union[str, bytes]] = None,
    ) -> Dict[str, Any]:
        """
        Run a subprocess and collect its output.

        Args:
            cmd: Command to execute
            env: Environment variables
            cwd: Working directory
            input_data: Data written to the process stdin

        Returns:
            Dictionary with execution results
        """
        self._counter += 1
        process_id = f"proc_{self._counter}"

        try:
            process = await asyncio.create_subprocess_exec(
                *[str(c) for c in cmd],
                env=env or os.environ.copy(),
                cwd=cwd,
                stdin=asyncio.subprocess.PIPE if input_data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Could not start subprocess {cmd[0]!r}: {e}")
            self._stats['failed'] += 1
            return {
                "ok": False,
                "code": -1,
                "stdout": "",
                "stderr": str(e),
                "process_id": process_id,
                "error": str(e),
            }

        self._active_processes[process_id] = process
        self._stats['started'] += 1
        logger.debug(f"Started async subprocess {process_id}: {cmd}")

        if isinstance(input_data, str):
            input_data = input_data.encode('utf-8')

        try:
            if self.timeout is None:
                stdout, stderr = await process.communicate(input_data)
            else:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(input_data),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError:
            logger.warning(f"Async subprocess {process_id} timed out after {self.timeout}s")
            process.kill()
            await process.wait()
            self._stats['timeout'] += 1
            return {
                "ok": False,
                "code": -1,
                "stdout": "",
                "stderr": f"Process timed out after {self.timeout}s",
                "process_id": process_id,
                "timeout": True,
            }
        finally:
            self._active_processes.pop(process_id, None)

        if process.returncode == 0:
            self._stats['completed'] += 1
        else:
            self._stats['failed'] += 1

        return {
            "ok": process.returncode == 0,
            "code": process.returncode,
            "stdout": stdout.decode('utf-8', errors='replace') if stdout else "",
            "stderr": stderr.decode('utf-8', errors='replace') if stderr else "",
            "process_id": process_id,
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get subprocess execution statistics."""
        return {
            **self._stats,
            "active_processes": len(self._active_processes),
        }


async def run_subprocess_async(
    cmd: List[str],
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    input_data: Optional[Union[str, bytes]] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Convenience function to run a subprocess asynchronously."""
    manager = AsyncSubprocessManager(timeout=timeout)
    return await manager.run_async(cmd, env=env, cwd=cwd, input_data=input_data)
