#!/usr/bin/env python3
"""
Setup verification script for ReelForge
Run this to verify your environment can split, generate and stitch
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv


def print_header(text):
    """Print a formatted header"""
    print(f"\n{'='*60}")
    print(f"  {text}")
    print(f"{'='*60}")


def print_status(check, status, details=""):
    """Print status with emoji"""
    emoji = "✅" if status else "❌"
    print(f"{emoji} {check}")
    if details:
        print(f"   → {details}")


def check_python_version():
    """Check Python version"""
    print_header("PYTHON VERSION CHECK")

    version = sys.version_info
    required = (3, 9)
    current = f"{version.major}.{version.minor}.{version.micro}"
    is_valid = (version.major, version.minor) >= required

    print_status(f"Python version: {current}", is_valid, f"Required: {required[0]}.{required[1]}+")
    return is_valid


def check_media_tools():
    """Check that ffmpeg and ffprobe are on PATH"""
    print_header("FFMPEG CHECK")

    all_good = True
    for tool in ('ffmpeg', 'ffprobe'):
        location = shutil.which(tool)
        if not location:
            print_status(f"{tool} binary", False, "Install FFmpeg and add it to PATH")
            all_good = False
            continue

        try:
            output = subprocess.run([tool, '-version'], capture_output=True, text=True, timeout=10)
            first_line = output.stdout.splitlines()[0] if output.stdout else location
            print_status(f"{tool} binary", output.returncode == 0, first_line)
            all_good = all_good and output.returncode == 0
        except (OSError, subprocess.TimeoutExpired) as e:
            print_status(f"{tool} binary", False, f"Error: {e}")
            all_good = False

    return all_good


def check_dependencies():
    """Check required dependencies"""
    print_header("DEPENDENCY CHECK")

    required_packages = [
        ('pydantic', 'pydantic'),
        ('yaml', 'PyYAML'),
        ('aiohttp', 'aiohttp'),
        ('ffmpeg', 'ffmpeg-python'),
        ('soundfile', 'soundfile'),
        ('rich', 'rich'),
        ('dotenv', 'python-dotenv'),
    ]

    missing_packages = []

    for package_name, pip_name in required_packages:
        try:
            __import__(package_name)
            print_status(f"{package_name}", True)
        except ImportError:
            print_status(f"{package_name}", False, f"Run: pip install {pip_name}")
            missing_packages.append(pip_name)

    if missing_packages:
        print(f"\n📦 Missing packages: {', '.join(missing_packages)}")
        print(f"💡 Install all: pip install {' '.join(missing_packages)}")

    return len(missing_packages) == 0


def check_credentials():
    """Check vendor API keys (from the environment or .env.local)"""
    print_header("CREDENTIALS CHECK")

    load_dotenv(dotenv_path=Path(__file__).parent / ".env.local")

    all_good = True
    for name, purpose in (('CARTESIA_API_KEY', 'speech synthesis'), ('FAL_KEY', 'video generation and relay')):
        present = bool(os.getenv(name))
        print_status(f"{name}", present, purpose if present else f"Set it in .env.local for {purpose}")
        all_good = all_good and present

    return all_good


def check_project_structure():
    """Check project directories and configuration"""
    print_header("PROJECT STRUCTURE CHECK")

    all_good = True

    for dir_path in ('configs', 'output', 'temp', 'logs'):
        exists = Path(dir_path).exists()
        print_status(f"Directory: {dir_path}", exists)
        if not exists:
            Path(dir_path).mkdir(parents=True, exist_ok=True)
            print(f"   → Created directory: {dir_path}")

    config_path = Path("configs/config.yaml")
    if not config_path.exists():
        print_status("Config file", False, "configs/config.yaml not found, defaults will be used")
        return False

    try:
        from reelforge.utils.config import Config

        config = Config.load(str(config_path))
        print_status("Config loading", True,
                     f"target {config.segmentation.target_duration}s, model {config.video_generation.model}")
    except Exception as e:
        print_status("Config loading", False, f"Error: {e}")
        all_good = False

    return all_good


def main():
    """Main setup check function"""
    print("🎬 ReelForge - Setup Verification")
    print("=" * 60)

    checks = [
        ("Python Version", check_python_version),
        ("FFmpeg", check_media_tools),
        ("Dependencies", check_dependencies),
        ("Credentials", check_credentials),
        ("Project Structure", check_project_structure),
    ]

    results = []

    for check_name, check_func in checks:
        try:
            result = check_func()
            results.append((check_name, result))
        except Exception as e:
            print(f"❌ {check_name} failed with error: {e}")
            results.append((check_name, False))

    print_header("VERIFICATION RESULTS")

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for check_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"{status} {check_name}")

    print(f"\nOVERALL: {passed}/{total} checks passed")

    if passed == total:
        print("🎉 SETUP COMPLETE! Try: python main.py assemble --script script.txt --prompt '...'")
    else:
        print("🔧 SETUP NEEDED! Please address the failed checks above.")

    return passed == total


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
