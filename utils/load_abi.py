import os
import json
from typing import List, Dict, Any, cast


def load_abi(abi_name: str) -> List[Dict[str, Any]]:
    """
    Load an ABI from the ABI directory
    
    Args:
        abi_name (str): Name of the ABI file without extension (e.g., "ERC20")
        
    Returns:
        List[Dict[str, Any]]: The ABI as a list of objects
        
    Raises:
        FileNotFoundError: If the ABI file doesn't exist
        json.JSONDecodeError: If the ABI file isn't valid JSON
        TypeError: If the loaded ABI is not a list of dictionaries
    """
    # Get the root directory of the project (one level up from utils)
    root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    
    abi_file_path = os.path.join(root_dir, 'ABI', f'{abi_name}.json')
    
    if not os.path.exists(abi_file_path):
        # Try with "I" prefix
        abi_file_path = os.path.join(root_dir, 'ABI', f'I{abi_name}.json')
        
        if not os.path.exists(abi_file_path):
            raise FileNotFoundError(f"ABI file for {abi_name} not found")
    
    with open(abi_file_path, 'r') as f:
        abi_data = json.load(f)
    
    if not isinstance(abi_data, list) or not all(isinstance(item, dict) for item in abi_data):
        raise TypeError(f"ABI file for {abi_name} does not contain a list of objects")
    
    return cast(List[Dict[str, Any]], abi_data)


def load_combined_abi(*abi_names: str) -> List[Dict[str, Any]]:
    """
    Merge several ABIs into one, dropping duplicate function/event entries.

    The chain client addresses contracts by function name only, so the
    ERC20, factory, pair and router ABIs are served from a single list.

    Args:
        *abi_names: ABI file names to merge, in priority order

    Returns:
        List[Dict[str, Any]]: Merged ABI
    """
    merged: List[Dict[str, Any]] = []
    seen: set = set()
    for abi_name in abi_names:
        for entry in load_abi(abi_name):
            key = (entry.get('type'), entry.get('name'))
            if key in seen:
                continue
            seen.add(key)
            merged.append(entry)
    return merged
